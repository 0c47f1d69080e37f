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
import dataclasses
import datetime
import json
import os
import shutil
import stat
import tempfile
import time
import typing as t

import rich.console

from awssh import __version__
from awssh.selector import parse_selection
from awssh.template import FqdnTemplate
from awssh.util import AwsshConfig
from awssh.util import CacheError
from awssh.util import MergeError

# Tags which carry meaning for awssh. Everything else is kept verbatim in the
# "tags" dictionary and can be referenced from the FQDN template.
NAME_TAG = "Name"
ROLE_TAG = "Role"
SHORT_NAME_TAG = "ShortName"


def parse_tags(raw: t.Optional[t.List[t.Dict[str, str]]]) -> t.Dict[str, str]:
    """
    Convert the EC2 API tag list ([{"Key": k, "Value": v}, ...]) to a dict.
    The API omits the "Tags" field entirely for untagged resources.
    """
    tags: t.Dict[str, str] = {}
    for tag in raw or []:
        tags[tag.get("Key", "")] = tag.get("Value", "")
    return tags


@dataclasses.dataclass
class AwsVpc:
    vpc_id: str
    tags: t.Dict[str, str]
    name: str = ""
    short_name: str = ""

    @classmethod
    def from_aws(cls, raw: t.Dict[str, t.Any]) -> "AwsVpc":
        tags = parse_tags(raw.get("Tags"))
        return cls(
            vpc_id=raw.get("VpcId", ""),
            tags=tags,
            name=tags.get(NAME_TAG, ""),
            short_name=tags.get(SHORT_NAME_TAG, ""),
        )


@dataclasses.dataclass
class AwsInstance:
    instance_id: str
    tags: t.Dict[str, str]
    name: str = ""
    roles: t.List[str] = dataclasses.field(default_factory=list)
    vpc_id: str = ""
    vpc: t.Optional[AwsVpc] = None

    @classmethod
    def from_aws(cls, raw: t.Dict[str, t.Any]) -> "AwsInstance":
        tags = parse_tags(raw.get("Tags"))
        roles: t.List[str] = []
        if ROLE_TAG in tags:
            roles = tags[ROLE_TAG].split(",")
        return cls(
            instance_id=raw.get("InstanceId", ""),
            tags=tags,
            name=tags.get(NAME_TAG, ""),
            roles=roles,
            vpc_id=raw.get("VpcId", ""),
        )

    def to_json(self) -> t.Dict[str, t.Any]:
        # The joined VPC is never persisted: it is attached again by merge()
        # each time the instances are loaded.
        d = dataclasses.asdict(self)
        d["vpc"] = None
        return d

    @classmethod
    def from_json(cls, d: t.Dict[str, t.Any]) -> "AwsInstance":
        d = dict(d)
        d.pop("vpc", None)
        if d.get("roles") is None:
            d["roles"] = []
        if not isinstance(d.get("tags"), dict):
            raise ValueError("tags must be an object")
        return cls(**d)

    def fqdn(self, template: t.Union[str, FqdnTemplate]) -> str:
        if isinstance(template, str):
            template = FqdnTemplate(template)
        return template.render(self)


@dataclasses.dataclass
class Snapshot:
    is_cached: bool
    instances: t.Dict[str, AwsInstance]


def instances_by_id(
    raws: t.Iterable[t.Dict[str, t.Any]]
) -> t.Dict[str, AwsInstance]:
    instances = {}
    for raw in raws:
        inst = AwsInstance.from_aws(raw)
        instances[inst.instance_id] = inst
    return instances


def vpcs_by_id(raws: t.Iterable[t.Dict[str, t.Any]]) -> t.Dict[str, AwsVpc]:
    vpcs = {}
    for raw in raws:
        vpc = AwsVpc.from_aws(raw)
        vpcs[vpc.vpc_id] = vpc
    return vpcs


def merge(
    instances: t.Dict[str, AwsInstance], vpcs: t.Mapping[str, AwsVpc]
) -> t.Dict[str, AwsInstance]:
    """
    Attach each instance's VPC, in place, and return the same dictionary.

    Every instance must belong to one of the given VPCs. There is no partial
    result: the first instance without a VPC raises MergeError.
    """
    for instance in instances.values():
        vpc = vpcs.get(instance.vpc_id)
        if vpc is None:
            raise MergeError(
                f"Vpc not found for instance_id={instance.instance_id}, "
                f"vpc_id={instance.vpc_id}"
            )
        instance.vpc = vpc
    return instances


CACHE_TOOL_NAME = "awssh"
CACHE_FILE_INSTANCES = "instances.json"
CACHE_STAGING_PREFIX = ".staging-"
CACHE_EXPIRY = datetime.timedelta(hours=24)


def cache_prefix(region: str, version: str = __version__) -> str:
    """
    The namespace shared by all cache entries of this version and region.
    Entries from other versions (whose format may differ) or from other regions
    never match it.
    """
    return f"{CACHE_TOOL_NAME}-{version}-{region}"


def is_cache_entry(entry: t.Any, prefix: str) -> bool:
    """
    Whether an entry of the cache directory (an os.DirEntry, or anything with
    a name and is_dir()) is a cache entry in the prefix namespace.
    """
    return entry.is_dir() and entry.name.startswith(prefix)


def is_expired(
    entry: t.Any,
    expiry: datetime.timedelta = CACHE_EXPIRY,
    now: t.Optional[float] = None,
) -> bool:
    if now is None:
        now = time.time()
    return entry.stat().st_mtime + expiry.total_seconds() < now


class CacheStore:
    """
    Instance inventory cached on disk, one directory per fetch.

    Each write creates a new directory named "{prefix}-{random}" within the
    cache directory, containing the instances as JSON. A read returns the
    first unexpired entry for the prefix, in whatever order the filesystem
    lists them. Nothing here is locked: concurrent invocations of awssh each
    write their own entry, and may read any other.
    """

    cache_dir: str
    expiry: datetime.timedelta
    last_entry: t.Optional[str] = None

    def __init__(
        self, cache_dir: str, expiry: datetime.timedelta = CACHE_EXPIRY
    ):
        self.cache_dir = cache_dir
        self.expiry = expiry

    def find_entry(self, prefix: str) -> t.Optional[str]:
        if not os.path.isdir(self.cache_dir):
            return None
        try:
            with os.scandir(self.cache_dir) as entries:
                for entry in entries:
                    if is_cache_entry(entry, prefix) and not is_expired(
                        entry, self.expiry
                    ):
                        return entry.path
        except OSError as e:
            raise CacheError(
                f"Failed to scan cache directory {self.cache_dir}: {e}"
            ) from e
        return None

    def read(self, prefix: str) -> t.Optional[t.Dict[str, AwsInstance]]:
        entry = self.find_entry(prefix)
        if entry is None:
            return None
        self.last_entry = entry
        return self.load(os.path.join(entry, CACHE_FILE_INSTANCES))

    @staticmethod
    def load(path: str) -> t.Dict[str, AwsInstance]:
        # A broken entry is fatal rather than a cache miss.
        try:
            with open(path) as f:
                data = json.load(f)
            if not isinstance(data, dict):
                raise ValueError("expected a JSON object")
            instances = {}
            for instance_id, d in data.items():
                inst = AwsInstance.from_json(d)
                if inst.instance_id != instance_id:
                    raise ValueError(
                        f"key {instance_id} holds instance {inst.instance_id}"
                    )
                instances[instance_id] = inst
        except (OSError, ValueError, TypeError, AttributeError) as e:
            raise CacheError(
                f"Failed to load cache file {path}: {e} "
                "(use --purge-cache to clear the cache)"
            ) from e
        return instances

    def write(
        self, prefix: str, instances: t.Mapping[str, AwsInstance]
    ) -> str:
        """
        Store instances in a new cache entry, and return the entry path.

        The entry is filled in under a staging name which no prefix matches,
        and renamed into place once complete. On failure the staging
        directory is removed, so no partial entry is ever left behind.
        """
        payload = {key: inst.to_json() for key, inst in instances.items()}
        try:
            os.makedirs(self.cache_dir, exist_ok=True)
            staging = tempfile.mkdtemp(
                prefix=f"{CACHE_STAGING_PREFIX}{prefix}-", dir=self.cache_dir
            )
        except OSError as e:
            raise CacheError(
                f"Failed to create cache entry in {self.cache_dir}: {e}"
            ) from e
        name = os.path.basename(staging)[len(CACHE_STAGING_PREFIX) :]
        entry = os.path.join(self.cache_dir, name)
        try:
            path = os.path.join(staging, CACHE_FILE_INSTANCES)
            with open(path, "w") as f:
                if hasattr(os, "fchmod"):
                    os.fchmod(f.fileno(), stat.S_IRUSR | stat.S_IWUSR)
                json.dump(payload, f)
            os.rename(staging, entry)
        except OSError as e:
            shutil.rmtree(staging, ignore_errors=True)
            raise CacheError(f"Failed to write cache entry {entry}: {e}") from e
        except BaseException:
            shutil.rmtree(staging, ignore_errors=True)
            raise
        return entry

    def purge(self) -> None:
        """
        Remove the entire cache directory: every version, every region.
        """
        if not os.path.isdir(self.cache_dir):
            return
        try:
            shutil.rmtree(self.cache_dir)
        except OSError as e:
            raise CacheError(
                f"Failed to remove cache directory {self.cache_dir}: {e}"
            ) from e


class AwsshCtx:
    con: rich.console.Console
    config: AwsshConfig
    store: CacheStore

    _ec2: t.Any = None
    _template: t.Optional[FqdnTemplate] = None

    def __init__(
        self,
        config: AwsshConfig,
        store: t.Optional[CacheStore] = None,
    ):
        # Escape hatch to disable the log timestamps
        log_time = "AWSSH_LOG_WITHOUT_TIME" not in os.environ
        # Logs go to stderr: stdout belongs to "awssh hosts" output.
        self.con = rich.console.Console(
            stderr=True, log_path=False, log_time=log_time
        )
        self.config = config
        if store is None:
            store = CacheStore(
                config.cache_dir_full,
                datetime.timedelta(hours=config.cache_expiry_hours),
            )
        self.store = store

    @property
    def ec2(self) -> t.Any:
        if self._ec2 is None:
            # boto3 is slow to import, and is not needed for every command.
            import awssh.aws

            self._ec2 = awssh.aws.ec2_client(
                self.config.region, self.config.aws_profile
            )
        return self._ec2

    @property
    def template(self) -> FqdnTemplate:
        if self._template is None:
            self._template = FqdnTemplate(self.config.template_fqdn)
        return self._template

    @property
    def cache_prefix(self) -> str:
        return cache_prefix(self.config.region)

    def fetch_instances(self) -> t.Dict[str, AwsInstance]:
        import awssh.aws

        raws = awssh.aws.fetch_running_instances(self.ec2)
        return instances_by_id(raws)

    def fetch_vpcs(self) -> t.Dict[str, AwsVpc]:
        import awssh.aws

        raws = awssh.aws.fetch_vpcs(self.ec2)
        return vpcs_by_id(raws)

    def purge_cache(self) -> None:
        self.store.purge()
        self.con.log(f"Purged cache directory [blue]{self.store.cache_dir}")

    def read_instances(self, purge: bool = False) -> Snapshot:
        """
        Return the running instances, with their VPCs attached.

        Instances come from the disk cache when a fresh entry exists for this
        region, otherwise from the EC2 API (and are then cached). VPCs are
        always fetched from the API, and joined to the instances afterward.
        """
        # A bad template is reported before any API call is made.
        _ = self.template
        prefix = self.cache_prefix
        snapshot: t.Optional[Snapshot] = None
        if purge:
            self.purge_cache()
        else:
            cached = self.store.read(prefix)
            if cached is not None:
                self.con.log(
                    f"Loaded {len(cached)} instances from cache "
                    f"[blue]{self.store.last_entry}"
                )
                snapshot = Snapshot(is_cached=True, instances=cached)
        if snapshot is None:
            instances = self.fetch_instances()
            path = self.store.write(prefix, instances)
            self.con.log(
                f"Fetched {len(instances)} running instances in "
                f"[purple]{self.config.region}[/purple], cached to [blue]{path}"
            )
            snapshot = Snapshot(is_cached=False, instances=instances)
        merge(snapshot.instances, self.fetch_vpcs())
        return snapshot

    def resolve_instances(
        self, snapshot: Snapshot, selection: str
    ) -> t.List[AwsInstance]:
        return parse_selection(selection, snapshot.instances)

    def resolve_fqdns(self, snapshot: Snapshot, selection: str) -> t.List[str]:
        return [
            inst.fqdn(self.template)
            for inst in self.resolve_instances(snapshot, selection)
        ]
