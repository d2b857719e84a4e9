#!/usr/bin/env python
from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

sys.path.append(str(Path(__file__).resolve().parents[1]))

from brandflow import create_client, load_settings
from brandflow.config import configure_logging
from brandflow.core import BrandflowError, describe_error
from brandflow.infrastructure import HistoryNavigator


async def run(args: argparse.Namespace) -> int:
    settings = load_settings()
    navigator = HistoryNavigator()
    async with create_client(settings, navigator=navigator) as client:
        try:
            if args.advance:
                brand = await client.engine.advance(args.brand_id)
            else:
                brand = await client.engine.sync(args.brand_id)
            print(f"{brand.id}\t{brand.current_status}\t{navigator.current}")

            if args.wait_assets:
                controller = client.asset_generation(args.brand_id)
                await controller.mount()
                await controller.wait()
                controller.unmount()
                if controller.state.is_error:
                    print(f"asset generation failed: {controller.state.error}", file=sys.stderr)
                    return 1
                assets = controller.state.data.assets if controller.state.data else []
                for asset in assets:
                    print(f"asset\t{asset.id}\t{asset.type}")
        except BrandflowError as exc:
            print(describe_error(exc), file=sys.stderr)
            return 1
    return 0


def main() -> None:
    parser = argparse.ArgumentParser(description="Show or advance the workflow status of a brand")
    parser.add_argument("brand_id", help="Brand identifier")
    parser.add_argument("--advance", action="store_true", help="Progress the brand once before printing")
    parser.add_argument("--wait-assets", action="store_true", help="Trigger asset generation and wait for it")
    parser.add_argument("--log-level", default=None, help="Override BRANDFLOW_LOG_LEVEL")
    args = parser.parse_args()

    configure_logging(args.log_level or load_settings().log_level)
    raise SystemExit(asyncio.run(run(args)))


if __name__ == "__main__":
    main()
