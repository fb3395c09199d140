"""Setup (provisioning) services.

This package contains the orchestration that *provisions* the AWS infrastructure
of a plan: the ordered provisioning steps and the apply workflow running them.
"""
