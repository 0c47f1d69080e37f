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
import configparser
import dataclasses
import os.path
import shlex
import typing as t

T = t.TypeVar("T")


class AwsshExc(Exception):
    pass


class ConfigError(AwsshExc):
    pass


class TemplateError(ConfigError):
    pass


class CacheError(AwsshExc):
    pass


class MergeError(AwsshExc):
    pass


class SelectionError(AwsshExc):
    pass


@dataclasses.dataclass
class AwsshConfig:
    region: str = "us-east-1"
    template_fqdn: str = "{{.Name}}.aws.example.com"
    ssh_bin: str = "ssh"
    ssh_args: t.Optional[str] = None
    selector_bin: str = "peco"
    selector_args: t.Optional[str] = None
    cache_dir: str = "~/.cache/awssh"
    cache_expiry_hours: int = 24
    aws_profile: t.Optional[str] = None

    @property
    def cache_dir_full(self) -> str:
        return os.path.expanduser(self.cache_dir)

    @property
    def ssh_args_list(self) -> t.List[str]:
        return shlex.split(self.ssh_args or "")

    @property
    def selector_args_list(self) -> t.List[str]:
        return shlex.split(self.selector_args or "")

    @classmethod
    def from_config_section(
        cls, conf: configparser.SectionProxy, filename: str
    ) -> "AwsshConfig":
        d: t.Dict[str, t.Any] = dict(**conf)
        check_args_dataclass(cls, d.keys(), f"{filename} [awssh] section")
        if "cache_expiry_hours" in d:
            try:
                d["cache_expiry_hours"] = conf.getint("cache_expiry_hours")
            except ValueError:
                raise ConfigError(
                    "cache_expiry_hours must be an integer, got "
                    f'"{d["cache_expiry_hours"]}"'
                )
        return cls(**d)

    def override(self, **kwargs: t.Any) -> "AwsshConfig":
        """
        Return a copy with each non-None keyword replacing the configured value.

        Command line flags default to None, so that only flags which the user
        actually passed take precedence over the configuration file.
        """
        changes = {k: v for k, v in kwargs.items() if v is not None}
        return dataclasses.replace(self, **changes)


def check_args_dataclass(
    klass: t.Any, args: t.Iterable[str], name: str
) -> None:
    """
    Check whether required args are present, and raise error for unknown.

    Dataclasses are pretty nice, but just passing user configuration dicts
    directly into their constructors will result in bad error messages for
    users. This function can check for missing required arguments or unknown
    arguments, and raise a pretty error.
    """
    optional = set()
    required = set()
    for field in dataclasses.fields(klass):
        if (
            field.default == dataclasses.MISSING
            and field.default_factory == dataclasses.MISSING
        ):
            required.add(field.name)
        else:
            optional.add(field.name)

    for arg in args:
        if arg in required:
            required.remove(arg)
        elif arg in optional:
            continue
        else:
            raise ConfigError(f'In {name}: unknown configuration "{arg}"')
    if required:
        missing = ", ".join(sorted(required))
        raise ConfigError(
            f"In {name}: missing required configurations: {missing}"
        )


def load_config(config_file: str) -> AwsshConfig:
    """
    Load the [awssh] section of the config file, if there is one.

    Unlike most of the settings, the config file itself is optional: every
    field has a default, so a missing file (or missing section) simply results
    in the default configuration.
    """
    if not os.path.isfile(config_file):
        return AwsshConfig()
    config = configparser.ConfigParser(interpolation=None)
    try:
        config.read(config_file)
    except configparser.Error as e:
        raise ConfigError(f"Error parsing {config_file}: {e}")
    if "awssh" not in config.sections():
        return AwsshConfig()
    return AwsshConfig.from_config_section(config["awssh"], config_file)


def shlex_join(args: t.Iterable[str]) -> str:
    return " ".join(shlex.quote(s) for s in args)
