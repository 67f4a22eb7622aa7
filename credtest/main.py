import os
import signal
import sys
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv

from credtest.core.exceptions import ConfigurationError
from credtest.attack.credential_attacker import AttackConfig, AttackReport, CredentialAttacker
from credtest.services.probe_service import load_prober
from credtest.services.stats_service import StatsCollector
from credtest.utils.cancellation import CancellationToken
from credtest.utils.logger import Logger
from credtest.utils.wordlists import read_lines, resolve_target


DEFAULT_CONFIG_PATH = "config/config.yaml"

DEFAULT_CONFIG: Dict[str, Any] = {
    'target': '',
    'wordlists': {'usernames': '', 'passwords': ''},
    'attack': {
        'threads': 4,
        'timeout_ms': 1000,
        'max_attempts': None,
        'rate_limit': 10,
        'burst': None,
        'report_interval': 5,
    },
    'prober': {'name': 'simulated', 'options': {}},
    'safety': {'kill_file': 'STOP.lock'},
    'logging': {'level': 'INFO', 'file': None, 'console': True},
}

BANNER = r"""
   ___            _ _____        _
  / __|_ _ ___ __| |_   _|__ ___| |_
 | (__| '_/ -_) _` | | |/ -_|_-<  _|
  \___|_| \___\__,_| |_|\___/__/\__|
  Credential Testing Engine (authorized use only)
"""


def _merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_config(config_path: Optional[str] = None) -> dict:
    """
    Load YAML settings on top of the built-in defaults.

    An explicitly named file must exist; the default path is optional.
    """
    path = config_path or DEFAULT_CONFIG_PATH
    try:
        with open(path, 'r') as f:
            data = yaml.safe_load(f) or {}
    except FileNotFoundError:
        if config_path:
            raise ConfigurationError(f"Config file not found: {config_path}")
        return _merge(DEFAULT_CONFIG, {})
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML config: {str(e)}")

    if not isinstance(data, dict):
        raise ConfigurationError(f"Config file {path} must contain a mapping")
    return _merge(DEFAULT_CONFIG, data)


def get_input(prompt: str) -> str:
    print(prompt, end='', flush=True)
    return sys.stdin.readline().strip()


def _int_or(value: Any, default: int) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _float_or(value: Any, default: float) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _setting(env_name: str, configured: Any, prompt: Optional[str] = None) -> Any:
    """Environment first, then config file, then (optionally) ask the operator."""
    value = os.environ.get(env_name)
    if value not in (None, ''):
        return value
    if configured not in (None, ''):
        return configured
    if prompt:
        return get_input(prompt)
    return None


def build_attack_config(config: dict) -> AttackConfig:
    """
    Assemble the run configuration from env, config file and prompts.

    Raises:
        ConfigurationError: If a required value is missing or invalid
    """
    attack = config['attack']

    target = resolve_target(_setting('TARGET', config.get('target'), "Target IP (or file path): "))
    users_file = _setting('USERNAME_LIST', config['wordlists'].get('usernames'), "Username list path: ")
    pass_file = _setting('PASSWORD_LIST', config['wordlists'].get('passwords'), "Password list path: ")
    threads = _int_or(_setting('THREADS', attack.get('threads'), "Threads (1-10): "), 4)
    timeout_ms = _int_or(_setting('TIMEOUT_MS', attack.get('timeout_ms'), "Timeout per attempt (ms): "), 1000)

    max_attempts = _setting('MAX_ATTEMPTS', attack.get('max_attempts'))
    burst = attack.get('burst')

    return AttackConfig.from_settings(
        target=target,
        usernames=read_lines(users_file),
        passwords=read_lines(pass_file),
        threads=threads,
        timeout_ms=timeout_ms,
        max_attempts=_int_or(max_attempts, 0) if max_attempts is not None else None,
        rate=_float_or(_setting('RATE_LIMIT', attack.get('rate_limit')), 10.0),
        burst=_int_or(burst, 0) if burst is not None else None,
        report_interval=_float_or(_setting('REPORT_INTERVAL', attack.get('report_interval')), 5.0)
    )


def confirm_authorization(target: str) -> bool:
    """Require the operator to confirm they may test the target."""
    if os.environ.get('CREDTEST_AUTHORIZED', '').lower() in ('1', 'yes', 'true'):
        return True

    print(f"\n{'='*60}")
    print(f"Target: {target}")
    print("Only test systems you own or have written permission to test.")
    print(f"{'='*60}")
    answer = get_input("Are you authorized to test this target? (yes/no): ").lower()
    return answer == 'yes'


def print_summary(report: AttackReport, target: str) -> None:
    snapshot = report.snapshot

    print(f"\n{'='*60}")
    print("[*] RUN CANCELLED" if report.cancelled else "[+] RUN COMPLETE")
    print(f"{'='*60}")
    print(f"Target: {target}")
    print(f"Pairs: {report.dispatched}/{report.total_pairs} dispatched")
    print(f"Attempts: {snapshot.attempts} | Successes: {snapshot.successes}")
    print(
        f"Failures: {report.outcome_counts.get('failure', 0)} | "
        f"Timeouts: {report.outcome_counts.get('timeout', 0)}"
    )
    print(f"Time: {snapshot.elapsed:.2f}s ({snapshot.rate:.2f} attempts/sec)")

    if report.latency and report.latency.count:
        latency = report.latency
        print(
            f"Latency: mean={latency.mean*1000:.1f}ms "
            f"(95% CI {latency.ci_low*1000:.1f}-{latency.ci_high*1000:.1f}ms) | "
            f"median={latency.median*1000:.1f}ms | p95={latency.p95*1000:.1f}ms"
        )

    for success in report.found:
        print(f"Found: {success.record(target)}")
    print(f"{'='*60}\n")


def main():
    load_dotenv()
    print(BANNER)

    try:
        config = load_config(os.environ.get('CREDTEST_CONFIG'))
        logger = Logger(
            name="CredTest",
            level=os.environ.get('LOG_LEVEL', config['logging']['level']),
            log_file=config['logging'].get('file'),
            console=config['logging']['console']
        )

        attack_config = build_attack_config(config)

        if not confirm_authorization(attack_config.target):
            print("Authorization not confirmed. Aborting.", file=sys.stderr)
            return 1

        prober = load_prober(
            os.environ.get('PROBER', config['prober']['name']),
            config['prober'].get('options') or {},
            logger=logger
        )

        cancel_token = CancellationToken(kill_file=config['safety'].get('kill_file'))
        previous_handler = signal.signal(
            signal.SIGINT,
            lambda signum, frame: cancel_token.cancel("interrupted")
        )

        try:
            attacker = CredentialAttacker(prober, logger=logger)
            report = attacker.run(attack_config, StatsCollector(), cancel_token)
        finally:
            signal.signal(signal.SIGINT, previous_handler)
            prober.close()

        print_summary(report, attack_config.target)
        return 130 if report.cancelled else 0

    except ConfigurationError as e:
        print(f"Configuration error: {str(e)}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("\n\nExiting...\n")
        return 130
    except Exception as e:
        print(f"Unexpected error: {str(e)}", file=sys.stderr)
        import traceback
        traceback.print_exc()
        return 3


if __name__ == "__main__":
    sys.exit(main())
