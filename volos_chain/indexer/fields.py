"""GraphQL field selections for tx-indexer ``getTransactions`` queries."""

UNIVERSAL_TRANSACTION_FIELDS = """\
index
hash
success
block_height
gas_wanted
gas_used
messages {
  typeUrl
  route
  value {
    ... on MsgCall {
      caller
      send
      pkg_path
      func
      args
    }
  }
}
response {
  events {
    ... on GnoEvent {
      type
      pkg_path
      func
      attrs {
        key
        value
      }
    }
  }
}"""

MARKET_ACTIVITY_FIELDS = """\
index
hash
success
block_height
messages {
  value {
    ... on MsgCall {
      caller
    }
  }
}
response {
  events {
    ... on GnoEvent {
      type
      attrs {
        key
        value
      }
    }
  }
}"""

BLOCK_TIME_FIELDS = """\
height
time"""
