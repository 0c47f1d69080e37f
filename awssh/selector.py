# -*- coding: utf-8 -*-
# Copyright (c) 2023, Oracle and/or its affiliates.
#
# The Universal Permissive License (UPL), Version 1.0
#
# Subject to the condition set forth below, permission is hereby granted to any
# person obtaining a copy of this software, associated documentation and/or data
# (collectively the "Software"), free of charge and under any and all copyright
# rights in the Software, and any and all patent rights owned or freely
# licensable by each licensor hereunder covering either (i) the unmodified
# Software as contributed to or provided by such licensor, or (ii) the Larger
# Works (as defined below), to deal in both
#
# (a) the Software, and
# (b) any piece of software and/or hardware listed in the
#     lrgrwrks.txt file if one is included with the Software (each a "Larger
#     Work" to which the Software is contributed by such licensors),
#
# without restriction, including without limitation the rights to copy, create
# derivative works of, display, perform, and distribute the Software and make,
# use, sell, offer for sale, import, export, have made, and have sold the
# Software and the Larger Work(s), and to sublicense the foregoing rights on
# either these or other terms.
#
# This license is subject to the following condition: The above copyright notice
# and either this complete permission notice or at a minimum a reference to the
# UPL must be included in all copies or substantial portions of the Software.
#
# THE SOFTWARE IS PROVIDED "AS IS", WITHOUT WARRANTY OF ANY KIND, EXPRESS OR
# IMPLIED, INCLUDING BUT NOT LIMITED TO THE WARRANTIES OF MERCHANTABILITY,
# FITNESS FOR A PARTICULAR PURPOSE AND NONINFRINGEMENT. IN NO EVENT SHALL THE
# AUTHORS OR COPYRIGHT HOLDERS BE LIABLE FOR ANY CLAIM, DAMAGES OR OTHER
# LIABILITY, WHETHER IN AN ACTION OF CONTRACT, TORT OR OTHERWISE, ARISING FROM,
# OUT OF OR IN CONNECTION WITH THE SOFTWARE OR THE USE OR OTHER DEALINGS IN THE
# SOFTWARE.
"""
Candidate lines for the interactive selector, and parsing its output

Each instance is shown as one line:

    NAME VPC-NAME INSTANCE-ID

where the name is cut to 30 characters and the VPC name to 10. Only the
instance ID is used to find the instance again. It is read as the third field
when the line is split on single spaces, so a name or VPC name containing a
space will shift it.
"""
import shutil
import subprocess
import typing as t

from awssh.util import AwsshExc
from awssh.util import SelectionError

if t.TYPE_CHECKING:
    from awssh.api import AwsInstance
    from awssh.api import AwsshCtx

CANDIDATE_FORMAT = "%.30s %.10s %s"
ID_FIELD = 2


def candidate_line(inst: "AwsInstance") -> str:
    vpc_name = inst.vpc.name if inst.vpc is not None else ""
    return CANDIDATE_FORMAT % (inst.name, vpc_name, inst.instance_id)


def build_candidates(instances: t.Mapping[str, "AwsInstance"]) -> str:
    lines = [candidate_line(inst) for inst in instances.values()]
    lines.sort()
    return "\n".join(lines)


def parse_selection(
    selection: str, instances: t.Mapping[str, "AwsInstance"]
) -> t.List["AwsInstance"]:
    selected = []
    for line in selection.split("\n"):
        if not line:
            continue
        fields = line.split(" ")
        if len(fields) <= ID_FIELD:
            raise SelectionError(f"cannot parse selected line: {line!r}")
        instance_id = fields[ID_FIELD]
        inst = instances.get(instance_id)
        if inst is None:
            raise SelectionError(
                f"instance (instance_id={instance_id}) not found"
            )
        selected.append(inst)
    return selected


def run_selector(ctx: "AwsshCtx", candidates: str) -> str:
    """
    Run the interactive selector (peco, by default) and return its output.

    The candidates are written to its stdin and its stdout is captured. Its
    stderr is left attached to the terminal.
    """
    selector = ctx.config.selector_bin
    path = shutil.which(selector)
    if path is None:
        raise AwsshExc(
            f'exec: "{selector}": executable file not found in $PATH'
        )
    cmd = [path] + ctx.config.selector_args_list
    proc = subprocess.run(
        cmd,
        input=candidates,
        stdout=subprocess.PIPE,
        universal_newlines=True,
    )
    if proc.returncode != 0:
        raise AwsshExc(f"{selector} exited with status {proc.returncode}")
    return t.cast(str, proc.stdout)
