"""
Key-value persistence for plan state.
JSON file (or in-memory) store with scenario-suffixed keys and change listeners.
"""
import json
import logging
import time
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from io_utils import state_from_dict, state_to_dict
from models import PlanState


logger = logging.getLogger(__name__)

SCENARIO_SPECIFIC_KEYS = ['profile', 'income', 'expenses', 'investmentsDebt', 'taxes',
                          'taxLadders', 'gap']

EXPORT_KEYS = ['profile', 'income', 'expenses', 'investmentsDebt', 'taxes', 'taxLadders',
               'filingStatusRemapping', 'customTaxLadder', 'property']

ACTIVE_SCENARIO_KEY = 'activeScenarioId'
LAST_MODIFIED_KEY = 'lastModified'
DEFAULT_SCENARIO_ID = '1'

Listener = Callable[[str, Any, str], None]


class PlanStorage:
    """
    Last-write-wins key-value store.

    Scenario-specific keys are stored as ``key_{scenarioId}`` except for the
    default scenario "1", which uses the bare key. Every save notifies the
    registered listeners with (key, data, stored_key).
    """

    def __init__(self, path: Optional[str] = None):
        self.path = Path(path) if path else None
        self._data: Dict[str, Any] = {}
        self._listeners: List[Listener] = []
        if self.path is not None and self.path.exists():
            self._read()

    def _read(self) -> None:
        try:
            with open(self.path, 'r') as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"[Storage] Could not read {self.path}: {e}")
            return
        if isinstance(data, dict):
            self._data = data
        else:
            logger.warning(f"[Storage] Ignoring {self.path}: top level is not an object")

    def _write(self) -> None:
        if self.path is None:
            return
        try:
            with open(self.path, 'w') as f:
                json.dump(self._data, f, indent=2)
        except (OSError, TypeError) as e:
            logger.error(f"[Storage] Could not write {self.path}: {e}")

    @property
    def active_scenario(self) -> str:
        return str(self._data.get(ACTIVE_SCENARIO_KEY) or DEFAULT_SCENARIO_ID)

    def set_active_scenario(self, scenario_id: str) -> None:
        self._data[ACTIVE_SCENARIO_KEY] = str(scenario_id)
        self._write()

    def scenario_key(self, key: str, scenario_id: Optional[str] = None) -> str:
        """Storage key for a base key in the given (or active) scenario"""
        if key not in SCENARIO_SPECIFIC_KEYS:
            return key
        active = str(scenario_id) if scenario_id else self.active_scenario
        return key if active == DEFAULT_SCENARIO_ID else f"{key}_{active}"

    def subscribe(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def unsubscribe(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def save(self, key: str, data: Any, scenario_id: Optional[str] = None) -> None:
        stored_key = self.scenario_key(key, scenario_id)
        # Round-trip through JSON so stored values never alias caller objects
        self._data[stored_key] = json.loads(json.dumps(data))
        self._data[LAST_MODIFIED_KEY] = int(time.time() * 1000)
        self._write()
        logger.debug(f"[Storage] Saved {stored_key}")
        for listener in list(self._listeners):
            listener(key, data, stored_key)

    def load(self, key: str, scenario_id: Optional[str] = None) -> Any:
        value = self._data.get(self.scenario_key(key, scenario_id))
        return json.loads(json.dumps(value)) if value is not None else None

    def remove(self, key: str, scenario_id: Optional[str] = None) -> None:
        self._data.pop(self.scenario_key(key, scenario_id), None)
        self._write()

    def keys(self) -> List[str]:
        return sorted(self._data)

    def export_all(self) -> Dict[str, Any]:
        """Every exportable key for the active scenario"""
        return {key: self.load(key) for key in EXPORT_KEYS}

    def import_all(self, data: Dict[str, Any]) -> None:
        """Save every non-null entry of data into the active scenario"""
        for key, value in data.items():
            if value is not None:
                self.save(key, value)
        logger.info(f"[Storage] Imported {sum(v is not None for v in data.values())} keys")

    def clear(self) -> None:
        self._data = {}
        self._write()

    def save_state(self, state: PlanState, scenario_id: Optional[str] = None) -> None:
        """Split a PlanState across the storage keys"""
        data = state_to_dict(state)
        self.save('profile', data['profile'], scenario_id)
        self.save('income', data['income'], scenario_id)
        self.save('expenses', data['expenses'], scenario_id)
        self.save('investmentsDebt', data['investmentsDebt'], scenario_id)
        self.save('taxes', {'customStandardDeductions': data['customStandardDeductions'],
                            'customTaxCredits': data['customTaxCredits']}, scenario_id)
        self.save('filingStatusRemapping', data['filingStatusRemapping'])
        self.save('customTaxLadder', data['customTaxLadder'])
        self.save('property', data['property'])

    def load_state(self, scenario_id: Optional[str] = None) -> Optional[PlanState]:
        """Reassemble a PlanState; None when no profile has been saved"""
        profile = self.load('profile', scenario_id)
        if profile is None:
            return None
        return state_from_dict({
            'profile': profile,
            'income': self.load('income', scenario_id),
            'expenses': self.load('expenses', scenario_id),
            'investmentsDebt': self.load('investmentsDebt', scenario_id),
            'taxes': self.load('taxes', scenario_id),
            'filingStatusRemapping': self.load('filingStatusRemapping'),
            'customTaxLadder': self.load('customTaxLadder'),
            'property': self.load('property'),
        })
