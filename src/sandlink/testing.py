"""

# Test Harness

Tests are coroutines returning a `TestResult`; they are registered by group with the shared `test_registry`.

"""
import enum
from dataclasses import dataclass, field
from typing import Callable, Coroutine, Any

@dataclass
class TestError:
  name: str
  error: Exception

class TestCode(enum.Enum):
  PASS = enum.auto()
  FAIL = enum.auto()
  SKIP = enum.auto()

@dataclass(frozen=True)
class TestResult:
  code: TestCode
  """The Result of the Test."""
  msg: str | None = None
  """An Optional reason for the Result; ex. the failed assertion."""

  def __str__(self) -> str:
    if self.msg is None: return f"Test {self.code.name}"
    return f"Test {self.code.name}: {self.msg}"

test_fn_t = Callable[..., Coroutine[Any, Any, TestResult]]

@dataclass
class TestRegistry:
  tests: dict[str, dict[str, test_fn_t]] = field(default_factory=dict)
  """{ group: { name: test } }"""

  @property
  def groups(self) -> tuple[str, ...]:
    return tuple(self.tests.keys())

  def register(self, group_name: str, name: str, fn: test_fn_t) -> None:
    if name in self.tests.get(group_name, {}): raise ValueError(f"Test {group_name}::{name} is already registered")
    self.tests.setdefault(group_name, {})[name] = fn

  def cases(self) -> list[tuple[str, str]]:
    """Every registered (group, name) pair, sorted."""
    return sorted((group, name) for group, tests in self.tests.items() for name in tests)

  def get_group_tests(self, group_name: str, *args, **kwargs) -> dict[str, Coroutine[Any, Any, TestResult]]:
    """Instantiate the Test coroutines of a Group."""
    if group_name not in self.tests: raise ValueError(f"Group {group_name} does not exist")
    return { name: fn(*args, **kwargs) for name, fn in self.tests[group_name].items() }

  async def run(self, group_name: str, name: str, *args, **kwargs) -> TestResult:
    """Run a single Test; an unexpected exception fails the Test instead of propagating."""
    if name not in self.tests.get(group_name, {}): raise ValueError(f"Test {group_name}::{name} is not registered")
    try: return await self.tests[group_name][name](*args, **kwargs)
    except Exception as e: return TestResult(TestCode.FAIL, f"{type(e).__name__}: {e}")

test_registry = TestRegistry()
"""The Shared Test Registry."""
