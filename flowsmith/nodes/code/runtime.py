"""
Code node runtime.

Runs the user's Python snippet as the body of an async function. The
snippet's `return` value becomes the node output; `print` calls are captured
into `logs`.

Params:
    code: Function body
    inputVariables: Names bound as parameters, read from `props["variables"]`
"""

import textwrap

from flowsmith.nodes.base import NodeExecutionError, Properties, Secrets


async def execute(props: Properties, secrets: Secrets):
    code = props.get("code") or ""
    names = [str(name) for name in props.get("inputVariables") or []]
    variables = props.get("variables") or {}
    logs = []

    def capture(*args):
        logs.append(" ".join(str(arg) for arg in args))

    source = "async def __code_node__({params}):\n{body}\n".format(
        params=", ".join(["print", "secrets"] + names),
        body=textwrap.indent(code, "    ") if code.strip() else "    return None",
    )

    namespace = {}
    try:
        exec(compile(source, "<code-node>", "exec"), namespace)
        output = await namespace["__code_node__"](
            capture, secrets, *[variables.get(name) for name in names]
        )
    except NodeExecutionError:
        raise
    except Exception as e:
        raise NodeExecutionError(f"Code execution failed: {e}", "code") from e

    return {"output": output, "logs": logs}
