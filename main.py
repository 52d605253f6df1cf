from rich.pretty import pprint

from conch import *

flows = {"purchases": "stopped", "refunds": "stopped"}


@command("start flow <flow-id>", descr="start a flow")
def start(arguments, output):
    flows[flow := arguments.get("flow-id")] = "running"
    output.print(f"flow {flow!r} started")


@command("stop flow <flow-id> [remotely]", descr="stop a flow")
def stop(arguments, output):
    if flows.get(flow := arguments.get("flow-id")) != "running":
        raise RuntimeError(f"flow {flow!r} is not running")
    flows[flow] = "stopped"
    output.print(f"flow {flow!r} stopped")


@command("list flows", descr="show every flow")
def listing(arguments, output):
    pprint(flows, console=output)


if __name__ == '__main__':
    CLI([start, stop, listing], {"flow-id": StringsCompleter(lambda: flows)}).start_interactive_mode()
