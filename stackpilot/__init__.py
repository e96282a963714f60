"""stackpilot: plan and deploy cluster add-ons from a free-text request."""

__version__ = "0.1.0"
