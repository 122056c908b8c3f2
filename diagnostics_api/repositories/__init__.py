"""Diagnostic engine repositories."""

from .diagnostic_repositories import DiagnosticLogRepository, TargetLeaseRepository

__all__ = ['DiagnosticLogRepository', 'TargetLeaseRepository']
