"""
Dry-run provisioner.

Nothing is recorded. Every output comes back as a ``<computed:name.output>``
placeholder with the shape a real run would produce, so the whole graph can
be walked to show what would happen.
"""

from typing import Any

from stackweave.provisioners.synthetic import synthesize_outputs
from stackweave.utils.logging import get_logger

logger = get_logger("stackweave.provisioners.preview")


class PreviewProvisioner:
    def __init__(self, *, project: str, region: str = "us-central1"):
        self.project = project
        self.region = region
        self.planned: list[tuple[str, str]] = []

    def provision(self, kind: str, name: str, properties: dict[str, Any]) -> dict[str, Any]:
        self.planned.append((kind, name))
        logger.debug(f"Would provision {kind} '{name}'")
        outputs = synthesize_outputs(kind, name, properties, project=self.project, region=self.region, strict=False)
        return {key: _placeholder(name, key, value) for key, value in outputs.items()}


def _placeholder(name: str, key: str, value: Any) -> Any:
    """Replace leaf values with ``<computed:...>`` markers, keeping the shape."""
    if isinstance(value, dict):
        return {k: _placeholder(name, f"{key}.{k}", v) for k, v in value.items()}
    if isinstance(value, list):
        return [_placeholder(name, f"{key}[{i}]", v) for i, v in enumerate(value)]
    return f"<computed:{name}.{key}>"
