"""Onboarding module."""

from tenantgate.onboarding.service import CreatedCompany, OnboardingService, get_onboarding_service

__all__ = ["CreatedCompany", "OnboardingService", "get_onboarding_service"]
