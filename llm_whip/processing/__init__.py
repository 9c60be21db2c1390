"""
llm-whip Processing Modules
One-shot audits of existing code
"""
from .audit import AuditScanner, AuditReport, record_baseline, run_audit

__all__ = [
    'AuditScanner',
    'AuditReport',
    'record_baseline',
    'run_audit',
]
