"""
Bundled provisioning collaborators.
"""

from stackweave.provisioners.local import LocalStateProvisioner
from stackweave.provisioners.preview import PreviewProvisioner
from stackweave.provisioners.synthetic import fingerprint, synthesize_outputs

__all__ = [
    "LocalStateProvisioner",
    "PreviewProvisioner",
    "synthesize_outputs",
    "fingerprint",
]
