"""Synthetic interpreter scripts shaped like the obfuscated challenge VM.

``build_interpreter`` assembles a dispatcher with enough filler statements to
trip the size heuristic, one handler per recognised tail shape, a decoder
loop carrying the ``& 255`` byte mask, a call-paired offset and the payload
strings.  ``HANDLERS`` pins the instruction kind and operand bits each
handler must classify as.
"""

from __future__ import annotations

from typing import Dict, List, Sequence, Tuple

FILLER_STATEMENTS = 55

# name -> (source, opcode index, expected kind, expected bits)
HANDLERS: Dict[str, Tuple[str, int, str, List[int]]] = {
    "fnPush": ("function fnPush(r) { r[10] = r[11].push(r[12]); }", 108, "ArrayPush", [10, 11, 12]),
    "fnThrow": ("function fnThrow(r) { throw r[13]; }", 101, "Throw", [13]),
    "fnBind": ("function fnBind(r) { r[14] = f.bind(r[15]); }", 102, "Bind", [14, 15]),
    "fnRegister": (
        "function fnRegister(r) { r[16] = fn.bind(r[17]); }",
        103,
        "RegisterVMFunction",
        [16, 17],
    ),
    "fnObject": ("function fnObject(r) { r[18] = {}; }", 104, "NewObject", [18]),
    "fnPop": ("function fnPop(r) { r[19] = r[20].pop(); }", 105, "Pop", [19, 20]),
    "fnSet": ("function fnSet(r) { r[21] = this.s[22]; }", 106, "SetProperty", [21, 22]),
    "fnGet": ("function fnGet(r, q) { r[23] = q[24]; }", 107, "GetProperty", [23, 24]),
    "fnSplice": ("function fnSplice(r) { r[25] = r[26].splice(0, 1); }", 109, "SplicePop", [25, 26]),
    "fnNew": ("function fnNew(r) { r[27] = new r[28](); }", 110, "CallFuncNoContext", [27, 28]),
    "fnArray": ("var fnArray = function (r) { r[32] = []; };", 111, "NewArray", [32]),
    "fnSwap": ("function fnSwap(r) { r[29] = r[30]; r[31] = 0; }", 112, "SwapRegister", [29, 30, 31]),
    "fnJump": ("function fnJump(r, p) { r[33] = p; }", 113, "Jump", [33]),
    "fnJumpIf": ("function fnJumpIf(r) { r[34] || (p = r[35]); }", 114, "JumpIf", [34, 35]),
    "fnMove": ("function fnMove(r) { m = r[36]; r[r[37] ^ 38] = m; }", 115, "Move", [36, 38, 37]),
    "fnCall": ("function fnCall(r) { r[39] = r[40] ? r[41] : r[42]; }", 116, "Call", [39, 40, 41, 42]),
}

# How each handler is registered inside the dispatcher.
MAPPING_TARGETS: Dict[str, str] = {
    "fnPush": "g[4 ^ 104] = fnPush;",
    "fnThrow": "g[101] = fnThrow;",
    "fnBind": "g[v2 + 100] = fnBind;",
    "fnRegister": "g.h103 = fnRegister;",
    "fnObject": "g[r ^ 104] = fnObject;",
    "fnPop": "g[105] = fnPop;",
    "fnSet": "g[106] = fnSet;",
    "fnGet": "g[107] = fnGet;",
    "fnSplice": "g[109] = fnSplice;",
    "fnNew": "g[110] = wrap(fnNew);",
    "fnArray": "g[111] = (0, fnArray);",
    "fnSwap": "g[112] = fnSwap;",
    "fnJump": "g[113] = fnJump;",
    "fnJumpIf": "g[114] = fnJumpIf;",
    "fnMove": "g[115] = fnMove;",
    "fnCall": "g[116] = fnCall;",
}

ORPHAN_INDEX = 120
CONSTANTS_INDEX = 7
KEY_BYTE = 77
OFFSET = 13
GHOST_INDEX = 130
MISS_INDEX = 132
LOST_INDEX = 131

INITIAL_PAYLOAD = "A" * 400
MAIN_PAYLOAD = "B" * 1200
COMPRESSOR_CHARSET = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789$-+"
INIT_ARGUMENT = "/0123456789:abcdef:ghijkl/"

KEY_LOOP = """function decode(s) {
  var out = [];
  for (var i = 0; i < s.length; i++) {
    out[i] = s.charCodeAt(i) & 255;
  }
  return out;
}
"""

CREATE_FUNCTION = """function mkFn(r) {
  r.c = r[1];
  return r.fns[r[2] + 3];
}
"""

UNRESOLVED_HANDLERS = """function fnGhost(r) { return r; }
function fnMiss(r) { return 0; }
function fnLost(r) { return; }
"""


def dispatcher(
    assignments: Sequence[str],
    *,
    filler: int = FILLER_STATEMENTS,
    header: str = "function VMCore(g)",
) -> str:
    """Return a function whose body is ``filler`` declarations plus ``assignments``."""

    lines = [f"  var v{index} = {index};" for index in range(filler)]
    lines.extend(f"  {statement}" for statement in assignments)
    return header + " {\n" + "\n".join(lines) + "\n}\n"


def dispatcher_assignments(*, constants: bool = True) -> List[str]:
    statements = [
        f'g[{GHOST_INDEX}] = [195, 188, 19, "127", 20];',
        f"g[{GHOST_INDEX}] = fnGhost;",
        f"g[{MISS_INDEX}] = [9, 9];",
        f"g[{MISS_INDEX}] = fnMiss;",
        f"g[{LOST_INDEX}] = fnLost;",
    ]
    statements.extend(MAPPING_TARGETS[name] for name in HANDLERS)
    statements.extend(
        [
            f"g[{ORPHAN_INDEX}] = g[1] + 1;",
            "g[195] = fnNoise;",
            "g[1500] = fnNoise;",
        ]
    )
    if constants:
        statements.append(f"g[{CONSTANTS_INDEX}] = [1, 2, 3, {KEY_BYTE}, 5];")
    return statements


def build_interpreter(
    *,
    key_loop: bool = True,
    constants: bool = True,
    initial_payload: bool = True,
) -> str:
    """Assemble a complete interpreter script; flags drop fatal artifacts."""

    parts = [
        f"var k = {OFFSET} + q();",
        f'var cs = "{COMPRESSOR_CHARSET}";',
        f'var ia = "{INIT_ARGUMENT}";',
    ]
    parts.extend(source for source, _, _, _ in HANDLERS.values())
    parts.append(UNRESOLVED_HANDLERS)
    parts.append(CREATE_FUNCTION)
    if key_loop:
        parts.append(KEY_LOOP)
    parts.append(dispatcher(dispatcher_assignments(constants=constants)))
    if initial_payload:
        parts.append(f'boot("{INITIAL_PAYLOAD}");')
    parts.append(f'run("{MAIN_PAYLOAD}", 1);')
    return "\n".join(parts) + "\n"


def render_chain(branches: Sequence[Tuple[int, str]]) -> str:
    """Render ``t === n ? (a) : t === m ? (b) : ... : t === z && (c)``."""

    rendered = [f"t === {value} ? ({body}) : " for value, body in branches[:-1]]
    last_value, last_body = branches[-1]
    rendered.append(f"t === {last_value} && ({last_body})")
    return "".join(rendered)


def binary_handler(name: str, symbols: Sequence[str], swapped: Sequence[int] = ()) -> str:
    """Binary operator handler; branch ``i`` reads slots ``100 + 3i`` onwards."""

    branches = []
    for index, symbol in enumerate(symbols):
        base = 100 + 3 * index
        left, right = ("b", "a") if index in swapped else ("a", "b")
        body = f"r[{base}] = r[{base + 1}] + ({left} {symbol} {right}) + r[{base + 2}]"
        branches.append((index, body))
    return (
        f"function {name}(r) {{\n"
        "  var t = r[79], a = r[80], b = r[81];\n"
        f"  {render_chain(branches)};\n"
        "  r[99] = 0;\n"
        "}\n"
    )
