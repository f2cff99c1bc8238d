"""
Shipping Module

- BaseCarrier interface and carrier implementations (carriers/)
- ShippingModuleRegistry for runtime enable/disable and priority (registry.py)
- Weight helpers shared by the carriers (weight.py)

No imports here: the API clients import weight.py without loading the
carriers.
"""
