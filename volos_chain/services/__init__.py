"""Service modules"""
from .chain_data import ChainData
from .history import HistoryService
from .state_query import StateQueryClient

__all__ = ["ChainData", "HistoryService", "StateQueryClient"]
