"""
Audits of deployed contract state against declarations.

Every check is recorded as a Finding. A mismatch or a failed read never stops
the audit, so a single run shows every discrepancy.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional

from .chain.abi import ADMINISTRATION, SIMPLIFIED_TOKEN_LOGIC, TOKEN_FRONT, same_address
from .config import AdminSpec, TokenDeployment
from .errors import ResolutionError

log = logging.getLogger(__name__)


@dataclass
class Finding:
    """Result of one audit check."""
    check: str
    expected: Any
    actual: Any = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        """True when the read succeeded and matched; addresses ignore case."""
        if self.error is not None:
            return False
        if isinstance(self.expected, str):
            return same_address(self.expected, self.actual)
        return self.expected == self.actual

    def __str__(self):
        if self.error is not None:
            return f"[error] {self.check}: {self.error}"
        status = "ok" if self.ok else "MISMATCH"
        return f"[{status}] {self.check}: expected {self.expected}, found {self.actual}"


@dataclass
class AuditReport:
    """All findings for one audited subject."""
    subject: str
    findings: List[Finding] = field(default_factory=list)

    @property
    def passed(self) -> bool:
        """True when every finding is ok."""
        return all(f.ok for f in self.findings)

    @property
    def failures(self) -> List[Finding]:
        """Findings that did not pass."""
        return [f for f in self.findings if not f.ok]

    def check(self, name: str, expected: Any, read: Callable[[], Any]) -> Finding:
        """Run one read and record it as a finding; read errors become findings too."""
        try:
            finding = Finding(name, expected, actual=read())
        except ResolutionError as exc:
            finding = Finding(name, expected, error=str(exc))
        self.findings.append(finding)
        if finding.ok:
            log.debug("%s: %s", self.subject, finding)
        else:
            log.error("%s: %s", self.subject, finding)
        return finding

    def __str__(self):
        lines = [f"{self.subject}: {'passed' if self.passed else 'FAILED'}"]
        lines.extend(f"  {finding}" for finding in self.findings)
        return "\n".join(lines)


def _reader(chain, address: str, function, *args) -> Callable[[], Any]:
    """Deferred single-value read of `function` at `address`."""
    def read():
        (value,) = chain.call(address, function, *args)
        return value
    return read


def audit_administration(chain, admin_address: str, spec: AdminSpec) -> AuditReport:
    """Compare an Administration contract with its declared cosigners and targets."""
    report = AuditReport(f"Administration @ {admin_address}")

    if spec.token_logic is not None:
        report.check("targetLogic", spec.token_logic,
                     _reader(chain, admin_address, ADMINISTRATION["targetLogic"]))
    if spec.token_front is not None:
        report.check("targetFront", spec.token_front,
                     _reader(chain, admin_address, ADMINISTRATION["targetFront"]))

    for name, expected in (("cosignerA", spec.cosigner_a),
                           ("cosignerB", spec.cosigner_b),
                           ("cosignerC", spec.cosigner_c)):
        report.check(name, expected, _reader(chain, admin_address, ADMINISTRATION[name]))
    return report


def audit_token(chain, deployment: TokenDeployment) -> AuditReport:
    """Compare a TokenFront/SimplifiedTokenLogic pair with its declaration."""
    report = AuditReport(f"{deployment.name} (front {deployment.front})")
    front, logic = deployment.front, deployment.logic

    report.check("TokenFront owner", deployment.admin, _reader(chain, front, TOKEN_FRONT["owner"]))
    report.check("TokenFront logic", logic, _reader(chain, front, TOKEN_FRONT["tokenLogic"]))
    for investor in deployment.investors:
        report.check(f"{investor.address} balance", investor.amount,
                     _reader(chain, front, TOKEN_FRONT["balanceOf"], investor.address))

    report.check("SimplifiedLogic owner", deployment.admin,
                 _reader(chain, logic, SIMPLIFIED_TOKEN_LOGIC["owner"]))
    report.check("SimplifiedLogic resolver", deployment.resolver,
                 _reader(chain, logic, SIMPLIFIED_TOKEN_LOGIC["resolver"]))
    report.check("SimplifiedLogic front", front,
                 _reader(chain, logic, SIMPLIFIED_TOKEN_LOGIC["front"]))
    return report
