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
awssh picks a running EC2 instance and opens a shell on it.

The running instances of the region are listed in an interactive fuzzy
selector (peco, by default). Each instance is shown with its Name tag, the
Name tag of its VPC, and its instance ID. Select one or more lines, and awssh
runs ssh against the hostnames of the selected instances.

Hostnames are built from a template, for example:

  --template-fqdn '{{.Name}}.aws.example.com'
  --template-fqdn '{{.InstanceId}}.{{.Vpc.ShortName}}.example.com'
  --template-fqdn '{{.Tags.Hostname}}'

Listing instances is slow, so awssh caches the instance list for 24 hours in
~/.cache/awssh. Use --purge-cache (or "awssh cache-clean") to start fresh,
for example after launching new instances.

Defaults for the command line options can be set in the [awssh] section of
~/.aws/awssh.ini (or the file named by $AWSSH_CONFIG).
"""
import argparse
import os
import sys
import textwrap
import traceback
import typing as t

import argcomplete  # type: ignore
import rich.console
import rich.markup
import rich.table
import subc
from botocore.exceptions import BotoCoreError
from botocore.exceptions import ClientError
from rich.text import Text

from awssh import __version__
from awssh.api import AwsInstance
from awssh.api import AwsshCtx
from awssh.api import Snapshot
from awssh.selector import build_candidates
from awssh.selector import run_selector
from awssh.ssh import run_ssh
from awssh.util import AwsshExc
from awssh.util import load_config
from awssh.util import SelectionError

DEFAULT_CONFIG_FILE = "~/.aws/awssh.ini"

COMMAND_GROUP_ORDER = [
    "Basic Commands",
    "Diagnostic Commands",
]


def config_file() -> str:
    return os.path.expanduser(
        os.environ.get("AWSSH_CONFIG", DEFAULT_CONFIG_FILE)
    )


class ParagraphFormatter(argparse.HelpFormatter):
    def _fill_text(self, text: str, width: int, indent: str) -> str:
        # Remove existing indentation and get paragraphs
        text = textwrap.dedent(text).strip()
        paragraphs = [p.replace("\n", " ").strip() for p in text.split("\n\n")]

        # Now indent and wrap each paragraph
        wrapped_pars = [
            textwrap.fill(textwrap.indent(p, indent), width) for p in paragraphs
        ]

        # And return the block of text
        return "\n\n".join(wrapped_pars)


class AwsshCmd(subc.Command):
    c: AwsshCtx
    rootname = "awssh"
    help_formatter_class = ParagraphFormatter  # type: ignore

    @classmethod
    def setup_ctx(cls, ns: argparse.Namespace) -> AwsshCtx:
        config = load_config(config_file()).override(
            region=ns.region,
            template_fqdn=ns.template_fqdn,
            ssh_bin=ns.ssh_bin,
            aws_profile=ns.profile,
            cache_dir=ns.cache_dir,
        )
        cls.c = AwsshCtx(config)
        return cls.c

    def read_instances(self) -> Snapshot:
        return self.c.read_instances(purge=self.args.purge_cache)


class SelectCmd(AwsshCmd):
    def select_hosts(self) -> t.List[str]:
        snapshot = self.read_instances()
        if not snapshot.instances:
            raise AwsshExc(
                f"no running instances in region {self.c.config.region}"
            )
        selection = run_selector(self.c, build_candidates(snapshot.instances))
        hosts = self.c.resolve_fqdns(snapshot, selection)
        if not hosts:
            raise SelectionError("no instance selected")
        return hosts


class SshCmd(SelectCmd):
    name = "ssh"
    group = "Basic Commands"
    help = "Select instances and connect to them (default)."
    description = """
    Select instances and connect to them.

    This is the default command, which runs when no command is given. The
    hostnames of all selected instances are passed to the SSH binary (see
    --ssh-bin) together, as a single space-separated argument.
    """

    def add_args(self, parser: argparse.ArgumentParser) -> None:
        parser.add_argument(
            "--quiet",
            "-q",
            action="store_true",
            help="do not print the SSH command before running it",
        )

    def run(self) -> None:
        # "awssh" without a sub-command runs this with the root parser's
        # namespace, which has no --quiet.
        quiet = getattr(self.args, "quiet", False)
        run_ssh(self.c, self.select_hosts(), quiet=quiet)


class HostsCmd(SelectCmd):
    name = "hosts"
    group = "Basic Commands"
    help = "Select instances and print their hostnames."
    description = """
    Select instances and print their hostnames, one per line.

    This is useful for handing the hostnames to another program, for example:
    pssh -H "$(awssh hosts)" uptime
    """

    def run(self) -> None:
        for host in self.select_hosts():
            print(host)


class ListCmd(AwsshCmd):
    name = "list"
    group = "Basic Commands"
    description = "List running instances and their hostnames."

    def columns(self) -> t.Dict[str, t.Callable[[AwsInstance], str]]:
        return {
            "Name": lambda i: i.name,
            "VPC": lambda i: i.vpc.name if i.vpc else "",
            "Roles": lambda i: ",".join(i.roles),
            "InstanceId": lambda i: i.instance_id,
            "Hostname": lambda i: i.fqdn(self.c.template),
        }

    def run(self) -> None:
        snapshot = self.read_instances()
        instances = sorted(
            snapshot.instances.values(),
            key=lambda i: (i.name, i.instance_id),
        )
        columns = self.columns()
        table = rich.table.Table()
        for name in columns:
            table.add_column(name)
        for inst in instances:
            table.add_row(*[fn(inst) for fn in columns.values()])
        con = rich.console.Console()
        con.print(table)
        source = "cache" if snapshot.is_cached else "EC2 API"
        self.c.con.log(f"{len(instances)} instances (from {source})")


class CacheCleanCmd(AwsshCmd):
    name = "cache-clean"
    group = "Diagnostic Commands"
    help = "Remove all cached API results."
    description = """
    Remove the cache directory.

    Note that this removes the whole directory, including entries for every
    region, and for other versions of awssh.
    """

    def run(self) -> None:
        self.c.purge_cache()


class VersionCmd(AwsshCmd):
    name = "version"
    group = "Diagnostic Commands"
    description = "Show the version of awssh."

    def run(self) -> None:
        print(f"awssh {__version__}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description=__doc__,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--template-fqdn",
        type=str,
        default=None,
        help="a template for building the FQDN of each instance (default: "
        "{{.Name}}.aws.example.com)",
    )
    parser.add_argument(
        "--region",
        "-r",
        type=str,
        default=None,
        help="AWS region for the session (default: us-east-1)",
    )
    parser.add_argument(
        "--ssh-bin",
        type=str,
        default=None,
        help="a path to the binary for SSH (default: ssh)",
    )
    parser.add_argument(
        "--purge-cache",
        action="store_true",
        help="purge the local cache of AWS API calls",
    )
    parser.add_argument(
        "--profile",
        type=str,
        default=None,
        help="AWS named profile to use for credentials",
    )
    parser.add_argument(
        "--cache-dir",
        type=str,
        default=None,
        help="directory for cached API results (default: ~/.cache/awssh)",
    )
    AwsshCmd.add_commands(
        parser,
        default="ssh",
        shortest_prefix=True,
        group_order=COMMAND_GROUP_ORDER,
    )
    return parser


def main(args: t.Optional[t.List[str]] = None) -> None:
    try:
        parser = build_parser()
        argcomplete.autocomplete(parser)
        ns = parser.parse_args(args)
        AwsshCmd.setup_ctx(ns)
        ns.func(ns)
    except AwsshExc as e:
        con = rich.console.Console(stderr=True)
        con.print(f"[bold red]error: {rich.markup.escape(str(e))}")
        sys.exit(1)
    except ClientError as e:
        con = rich.console.Console(stderr=True)
        con.print("[bold red]-- error: cut here when reporting --")
        tb = traceback.format_exc()
        con.print(Text(tb, style="dim italic"))
        err = e.response.get("Error", {})
        code = err.get("Code", "Unknown")
        message = rich.markup.escape(err.get("Message", str(e)))
        con.print(f"[bold red]AWS Service Error: {code} - {message}")
        sys.exit(1)
    except BotoCoreError as e:
        con = rich.console.Console(stderr=True)
        con.print(f"[bold red]AWS error: {rich.markup.escape(str(e))}")
        sys.exit(1)
    except KeyboardInterrupt:
        sys.exit(1)


if __name__ == "__main__":
    main()
