import copy
from typing import Any, Dict


class StateSnapshot:
    """Mixin giving contracts deep-copy snapshot/restore of selected attributes"""

    _snapshot_fields: tuple = ()

    def snapshot(self) -> Dict[str, Any]:
        return {name: copy.deepcopy(getattr(self, name)) for name in self._snapshot_fields}

    def restore(self, state: Dict[str, Any]) -> None:
        for name, value in state.items():
            setattr(self, name, value)
