"""
Transfer Gate.

Verifies that mastery generalizes before a skill counts as unlocked:
- Near transfer: same skill, new surface context
- Far transfer: same skill, different domain

A skill is unlocked once every required test has a passing result.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Optional


class TransferType(str, Enum):
    NEAR = "near"
    FAR = "far"


@dataclass(frozen=True)
class TransferTest:
    """A transfer task registered for one skill."""

    id: str
    skill_id: str
    transfer_type: TransferType
    context: str = ""
    passing_score: float = 0.7


@dataclass(frozen=True)
class TransferTestResult:
    """Outcome of one attempt at a transfer test."""

    test_id: str
    skill_id: str
    passed: bool
    score: float
    timestamp: int

    def to_dict(self) -> dict:
        return {
            "test_id": self.test_id,
            "skill_id": self.skill_id,
            "passed": self.passed,
            "score": self.score,
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class TransferGateConfig:
    """Which transfer kinds gate a skill."""

    require_near_transfer: bool = True
    require_far_transfer: bool = False


@dataclass
class TransferStatus:
    skill_id: str
    unlocked: bool
    near_passed: bool
    far_passed: bool
    pending_tests: list[str] = field(default_factory=list)


class TransferGate:
    """
    Decides which transfer tests a skill needs and whether it is unlocked.

    Usage:
        gate = TransferGate()
        test = gate.get_next_test("basic", tests, results)
        if gate.is_skill_unlocked("basic", tests, results):
            ...
    """

    def __init__(self, config: Optional[TransferGateConfig] = None):
        self.config = config or TransferGateConfig()

    def get_required_tests(self, skill_id: str, available_tests: Iterable[TransferTest]) -> list[TransferTest]:
        """First near test (by id) and, when configured, first far test."""
        skill_tests = sorted(
            (t for t in available_tests if t.skill_id == skill_id),
            key=lambda t: t.id,
        )

        required: list[TransferTest] = []
        if self.config.require_near_transfer:
            near = next((t for t in skill_tests if t.transfer_type == TransferType.NEAR), None)
            if near:
                required.append(near)
        if self.config.require_far_transfer:
            far = next((t for t in skill_tests if t.transfer_type == TransferType.FAR), None)
            if far:
                required.append(far)
        return required

    def get_pending_tests(
        self,
        skill_id: str,
        available_tests: Iterable[TransferTest],
        completed: Iterable[TransferTestResult],
    ) -> list[TransferTest]:
        passed_ids = {r.test_id for r in completed if r.passed}
        return [t for t in self.get_required_tests(skill_id, available_tests) if t.id not in passed_ids]

    def get_next_test(
        self,
        skill_id: str,
        available_tests: Iterable[TransferTest],
        completed: Iterable[TransferTestResult],
    ) -> Optional[TransferTest]:
        """Near tests before far tests."""
        pending = self.get_pending_tests(skill_id, available_tests, completed)
        if not pending:
            return None
        near = next((t for t in pending if t.transfer_type == TransferType.NEAR), None)
        return near or pending[0]

    def is_skill_unlocked(
        self,
        skill_id: str,
        available_tests: Iterable[TransferTest],
        completed: Iterable[TransferTestResult],
    ) -> bool:
        return not self.get_pending_tests(skill_id, available_tests, completed)

    @staticmethod
    def passes(test: TransferTest, score: float) -> bool:
        return score >= test.passing_score

    def evaluate_attempt(self, test: TransferTest, score: float, timestamp: int) -> TransferTestResult:
        return TransferTestResult(
            test_id=test.id,
            skill_id=test.skill_id,
            passed=self.passes(test, score),
            score=score,
            timestamp=timestamp,
        )

    def get_transfer_status(
        self,
        skill_id: str,
        available_tests: Iterable[TransferTest],
        completed: Iterable[TransferTestResult],
    ) -> TransferStatus:
        available_tests = list(available_tests)
        completed = list(completed)
        required = self.get_required_tests(skill_id, available_tests)
        passed_ids = {r.test_id for r in completed if r.passed}

        near_passed = any(
            t.transfer_type == TransferType.NEAR and t.id in passed_ids for t in required
        )
        far_passed = any(
            t.transfer_type == TransferType.FAR and t.id in passed_ids for t in required
        )
        pending = [t.id for t in required if t.id not in passed_ids]

        return TransferStatus(
            skill_id=skill_id,
            unlocked=not pending,
            near_passed=near_passed or not self.config.require_near_transfer,
            far_passed=far_passed or not self.config.require_far_transfer,
            pending_tests=pending,
        )

    @staticmethod
    def create_test(
        test_id: str,
        skill_id: str,
        transfer_type: TransferType,
        context: str = "",
        passing_score: float = 0.7,
    ) -> TransferTest:
        return TransferTest(
            id=test_id,
            skill_id=skill_id,
            transfer_type=TransferType(transfer_type),
            context=context,
            passing_score=passing_score,
        )
