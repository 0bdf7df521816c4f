"""
eks-deploy provisions the infrastructure for the 3-tier web application with
terraform, publishes the application image, deploys it to EKS and verifies
that it is healthy.
"""

__all__ = [
    "config",
    "terraform",
    "outputs",
    "manifest",
    "image",
    "deployer",
    "verify",
    "smoke",
    "pipeline",
    "exceptions",
    # Note this is exposed for CLI documentation, not to be used as a library
    "tool",
]
