"""
Run summary
"""

import json
from dataclasses import dataclass, field

from .logger import log, verbose_log
from .scenarios import TestScenario
from .types import ScenarioResult


@dataclass
class RunSummary:
    """Pass/fail tally of a harness run"""

    passed: int = 0
    failed: int = 0
    failures: list[tuple[int, str, str]] = field(default_factory=list)

    @property
    def total(self) -> int:
        return self.passed + self.failed

    @property
    def exit_code(self) -> int:
        return 1 if self.failed else 0

    def record(self, number: int, scenario: TestScenario, result: ScenarioResult) -> None:
        """Count a result; failures are reported immediately"""
        if result.success:
            verbose_log("  ✅ Test passed")
            self.passed += 1
            return

        self.failed += 1
        error = result.error or "unknown error"
        self.failures.append((number, scenario.name, error))
        log(f"❌ #{number} {scenario.name}: {error}")
        verbose_log(
            f"  🔍 Error details: {json.dumps(result.model_dump(exclude_none=True), indent=2, default=str)}"
        )

    def print_summary(self) -> None:
        log("")
        log("📊 Test Summary")
        log("==============")
        log(f"✅ Passed: {self.passed}")
        log(f"❌ Failed: {self.failed}")
        log(f"📈 Total: {self.total}")
