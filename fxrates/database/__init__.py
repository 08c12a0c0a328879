from .connection import Database
from .models import Base, ExchangeRateRow

__all__ = ["Database", "Base", "ExchangeRateRow"]
