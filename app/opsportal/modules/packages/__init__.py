"""
Packages: sellable bundles of service items plus onboarding action items.
"""
