# Bind verifier - policy-gated verification of Bind Protocol proof credentials

__version__ = "0.1.0"
