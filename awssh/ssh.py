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
import shutil
import subprocess
import typing as t

from awssh.util import AwsshExc
from awssh.util import SelectionError
from awssh.util import shlex_join

if t.TYPE_CHECKING:
    from awssh.api import AwsshCtx


def ssh_cmd(ctx: "AwsshCtx", hosts: t.Sequence[str]) -> t.List[str]:
    """
    Return the remote shell command line for the given hosts.

    The hosts are joined by spaces into a *single* argument. For plain ssh
    that only makes sense with one host, but cluster-ssh style wrappers accept
    the whole list this way.
    """
    ssh_bin = ctx.config.ssh_bin
    path = shutil.which(ssh_bin)
    if path is None:
        raise AwsshExc(
            f'exec: "{ssh_bin}": executable file not found in $PATH'
        )
    return [path] + ctx.config.ssh_args_list + [" ".join(hosts)]


def run_ssh(
    ctx: "AwsshCtx", hosts: t.Sequence[str], quiet: bool = False
) -> None:
    """
    Run the remote shell against hosts, attached to this terminal.
    """
    if not hosts:
        raise SelectionError("no instance selected")
    cmd = ssh_cmd(ctx, hosts)
    if not quiet:
        ctx.con.log(f"Exact SSH command: [green]{shlex_join(cmd)}")
    proc = subprocess.run(cmd)
    if proc.returncode != 0:
        raise AwsshExc(
            f"{ctx.config.ssh_bin} exited with status {proc.returncode}"
        )
