import logging
import platform
from typing import Any, Dict, List, Optional

log = logging.getLogger(__name__)

# Feature flags as this launcher presents itself to version rules.
DEFAULT_FEATURES: Dict[str, bool] = {
    'is_demo_user': False,
    'has_custom_resolution': True,
}


def get_os_name() -> str:
    """Gets the current OS name ('windows', 'osx', 'linux').

    Other systems are reported by their lowercase ``platform.system()`` name.
    """
    system = platform.system()
    if system == 'Windows': return 'windows'
    elif system == 'Darwin': return 'osx'
    elif system == 'Linux': return 'linux'
    else: return system.lower()


def get_arch_name() -> str:
    """Gets the current architecture name ('x64', 'x86', 'arm64', 'arm32')."""
    machine = platform.machine().lower()
    if machine in ['amd64', 'x86_64']: return 'x64'
    elif machine in ['i386', 'i686']: return 'x86'
    elif machine in ['arm64', 'aarch64']: return 'arm64'
    elif machine.startswith('arm') and '64' not in machine: return 'arm32'
    else:
        log.warning(f"Unsupported architecture: {platform.machine()}. Falling back to 'x64'.")
        return 'x64'


class Environment:
    """The platform and feature flags that version rules are evaluated against."""

    def __init__(self, os_name: Optional[str] = None, arch: Optional[str] = None,
                 features: Optional[Dict[str, bool]] = None):
        self.os_name = os_name or get_os_name()
        self.arch = arch or get_arch_name()
        self.features = dict(DEFAULT_FEATURES if features is None else features)

    def check_rule(self, rule: Optional[Dict[str, Any]]) -> bool:
        """
        Checks if a *single rule* permits an item in this environment.
        Returns True if the rule permits inclusion, False otherwise.
        """
        if not rule or 'action' not in rule:
            return True

        action = rule.get('action', 'allow')
        applies = True

        os_rule = rule.get('os')
        if isinstance(os_rule, dict):
            if 'name' in os_rule and os_rule['name'] != self.os_name:
                applies = False
            if applies and 'arch' in os_rule and os_rule['arch'] != self.arch:
                applies = False

        features_rule = rule.get('features')
        if applies and isinstance(features_rule, dict):
            for feature, expected in features_rule.items():
                if self.features.get(feature, False) != expected:
                    applies = False
                    break

        if action == 'allow':
            return applies
        elif action == 'disallow':
            return not applies
        else:
            log.warning(f"Unknown rule action: {action}. Defaulting to allow.")
            return True

    def check_item_rules(self, rules: Optional[List[Dict[str, Any]]]) -> bool:
        """An item is included unless *any* of its rules prevents it."""
        if not rules:
            return True
        return all(self.check_rule(rule) for rule in rules)
