"""
Anchor table for the bundle patches.

Every literal, regex and window size used to find a construct in the
minified bundle lives here. When an upstream release moves or renames
something, this is the only file that should need editing.

Identifiers in the bundle are renamed on every release, so patterns only
pin property names, string literals and punctuation; identifiers are
matched with ``\\w+`` (or ``[$\\w]+`` where ``$`` is common).
"""

from __future__ import annotations

import re
from typing import Final

# Verbose property inside the spinner element props
VERBOSE_ELEMENT_RE: Final = re.compile(
    r"createElement\([$\w]+,\{[^}]+spinnerTip[^}]+overrideMessage[^}]+\}"
)
VERBOSE_PROPERTY_RE: Final = re.compile(r"verbose:[^,}]+")

# Context low warning component
CONTEXT_LOW_ANCHOR: Final = "Context low ("
CONTEXT_LOW_DECLARATION: Final = "function "
CONTEXT_LOW_MARKER: Final = "tokenUsage:"
# Sized to the largest expected component body (observed around 466 chars)
CONTEXT_LOW_WINDOW: Final = 800
# How far past the anchor the function span extends
CONTEXT_LOW_LOOKAHEAD: Final = 100
CONTEXT_LOW_CONDITION_RE: Final = re.compile(r"if\([^)]+\)return null")

# Context low message literal; group 1 is the percentage variable
CONTEXT_LOW_MESSAGE_RE: Final = re.compile(
    r'"Context low \(",([^,]+),"% remaining\) · Run /compact to compact & continue"'
)

# "esc to interrupt" hint, current shape: SA="esc",_A="interrupt" ... ...H1?[
ESC_INTERRUPT_ANCHOR_RE: Final = re.compile(r'="esc",\w+="interrupt"')
ESC_INTERRUPT_WINDOW: Final = 800
ESC_INTERRUPT_SPREAD_RE: Final = re.compile(r"\.\.\.(\w+)\?\[")

# "esc to interrupt" hint, legacy shape: ...H1?[...{key:"esc"}...,"to interrupt"...]:[]
ESC_INTERRUPT_LEGACY_KEY: Final = '{key:"esc"}'
ESC_INTERRUPT_LEGACY_LABEL: Final = '"to interrupt"'
ESC_INTERRUPT_LEGACY_WINDOW: Final = 200

# Chrome integration subscription gate: let qA=XV1(X.chrome)&&zB();
CHROME_SETUP_ANCHOR: Final = "tengu_claude_in_chrome_setup"
CHROME_SETUP_WINDOW: Final = 300
CHROME_SUBSCRIPTION_RE: Final = re.compile(r"let\s*\w+=\w+\(\w+\.chrome\)(&&\w+\(\))")

# /chrome command message guarded by !G&&
CHROME_COMMAND_ANCHOR: Final = '"Claude in Chrome requires a claude.ai subscription."'
CHROME_COMMAND_WINDOW: Final = 100
CHROME_COMMAND_GUARD_RE: Final = re.compile(r"!(\w+)&&")

# Startup notification guarded by if(!zB()){
CHROME_STARTUP_ANCHOR: Final = 'key:"chrome-requires-subscription"'
CHROME_STARTUP_WINDOW: Final = 150
CHROME_STARTUP_GUARD_RE: Final = re.compile(r"if\((!\w+\(\))\)\{")
