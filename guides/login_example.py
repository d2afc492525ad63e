"""Example driving the zkLogin workflow end to end from a terminal.

Usage:
    python guides/login_example.py mypackage.zk:PoseidonCrypto
"""

import asyncio
import sys

from zkflow import WorkflowEvent, load_config, create_workflow


def on_step(step: int) -> None:
    print(f"-> step {step}")


async def main():
    config = load_config()
    config.crypto = sys.argv[1]

    workflow = await create_workflow(config)
    workflow.subscribe(WorkflowEvent.STEP_CHANGED, on_step)
    workflow.subscribe(WorkflowEvent.ERROR, lambda message: print(f"error: {message}"))

    try:
        if not workflow.is_ready:
            print("Open this URL and sign in:")
            print(workflow.redirect_to_provider())
            callback = input("Paste the URL you were redirected to: ")
            await workflow.handle_callback(callback)

        state = workflow.get_state()
        if state.is_ready:
            print(f"Address: {state.zklogin_address.address}")
            await workflow.request_faucet_funds()
            print(f"Digest: {await workflow.execute_transaction()}")
    finally:
        await workflow.aclose()


if __name__ == "__main__":
    asyncio.run(main())
