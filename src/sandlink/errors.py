"""Errors (not Exceptions) & the few Exceptions the bookkeeping layer raises"""
from __future__ import annotations
from typing import TypedDict

NO_ERROR_T = type('NO_ERROR', (), {})
NO_ERROR = NO_ERROR_T()

class Error(TypedDict):
  """An Error"""

  kind: str
  """The Kind of Error"""
  message: str
  """A Human Readable description about the Error that is helpful"""

  @staticmethod
  def render(error: Error) -> str: return f"{error['kind']}: {error['message']}"

class DuplicateClient(ValueError):
  """A Client with the same ID is already registered"""

  def __init__(self, client_id: str):
    super().__init__(f"Client `{client_id}` is already registered")
    self.client_id = client_id

class ConfigError(ValueError): pass
