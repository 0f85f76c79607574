"""
Configuration diagnostics.

Prints the loaded payment configuration, which credentials each gateway
has, which gateways made it into the registry and, with --probe, the
result of each gateway's live health check.

Usage:
    paygate-diagnose [--gateway NAME] [--probe]
"""

import argparse
import asyncio
from typing import Optional, Sequence

from paygate.bootstrap import build_payment_manager
from paygate.config import Settings
from paygate.engine.retry import InvalidConfiguration
from paygate.gateways import GATEWAY_CLASSES
from paygate.gateways.base import GatewayConfig


def _mark(ok: bool) -> str:
    return "ok" if ok else "MISSING"


def describe_configuration(settings: Settings, only: Optional[str] = None) -> list[str]:
    config = settings.payment_config()
    failover = config["failover"]
    lines = [
        "Payment configuration",
        f"  default gateway:     {config['default']}",
        f"  failover enabled:    {failover['enabled']}",
        f"  max retries:         {failover['max_retries']}",
        f"  retry delay:         {failover['retry_delay']}s"
        f" ({'exponential' if failover['exponential_backoff'] else 'fixed'})",
        f"  preferred failover:  {failover['preferred_failover']}",
        "",
    ]

    for name, raw in config["gateways"].items():
        if only and name != only:
            continue
        try:
            gateway_config = GatewayConfig.from_mapping(name, raw)
        except InvalidConfiguration as e:
            lines.extend([f"Gateway {name}: {e}", ""])
            continue
        mode = "test" if gateway_config.is_test_mode else "production"
        lines.append(
            f"Gateway {name} (enabled={gateway_config.enabled}, priority={gateway_config.priority}, "
            f"environment={gateway_config.environment} [{mode}])"
        )
        for field in GATEWAY_CLASSES[name].required_config:
            lines.append(f"  {field:<15} {_mark(bool(gateway_config.get(field)))}")
        lines.append("")

    return lines


async def run(settings: Settings, only: Optional[str] = None, probe: bool = False) -> int:
    """Print the report. Returns 1 when no gateway is usable, else 0."""
    for line in describe_configuration(settings, only):
        print(line)

    manager = build_payment_manager(settings)
    try:
        available = manager.get_available_gateways()
        print("Registered gateways")
        if not len(manager.registry):
            print("  (none)")
        for name, gateway in manager.registry.all().items():
            if only and name != only:
                continue
            state = "available" if name in available else "unavailable"
            print(f"  {name:<10} priority={gateway.get_priority():<4} {state}")

        if probe:
            print("")
            print("Health checks")
            names = [only] if only else manager.registry.names()
            for name in names:
                if name not in manager.registry:
                    print(f"  {name:<10} not registered")
                    continue
                results = await manager.check_health(name)
                print(f"  {name:<10} {'healthy' if results[name] else 'UNHEALTHY'}")
    finally:
        await manager.aclose()

    return 0 if available else 1


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Diagnose payment gateway configuration.")
    parser.add_argument("--gateway", choices=sorted(GATEWAY_CLASSES), help="Only report on this gateway")
    parser.add_argument("--probe", action="store_true", help="Run each gateway's live health check")
    args = parser.parse_args(argv)

    return asyncio.run(run(Settings(), only=args.gateway, probe=args.probe))


if __name__ == "__main__":
    raise SystemExit(main())
