"""
Application Orchestration Package

Architectural Intent:
- Contains the deployment pipeline that sequences stages and schedules hosts
"""

from tarship.application.orchestration.pipeline import DeploymentPipeline

__all__ = ["DeploymentPipeline"]
