from typing import Dict

from ...domain.ports.persistence import SettingsRepository

DEFAULT_SETTINGS: Dict[str, str] = {
    "support_email": "",
    "report_problem_email": "",
    "maintenance_mode": "false",
}


class SettingsService:
    """Application settings editable from the back office."""

    def __init__(self, repository: SettingsRepository) -> None:
        self._repository = repository

    def current(self) -> Dict[str, str]:
        values = dict(DEFAULT_SETTINGS)
        values.update(self._repository.list_settings())
        return values

    def update(self, values: Dict[str, str]) -> Dict[str, str]:
        unknown = sorted(set(values) - set(DEFAULT_SETTINGS))
        if unknown:
            raise ValueError(f"Unknown settings: {', '.join(unknown)}")
        for key, value in values.items():
            self._repository.set_setting(key, value)
        return self.current()
