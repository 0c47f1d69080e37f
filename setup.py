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
import re

from setuptools import find_packages
from setuptools import setup

long_description = open("README.md").read()

with open("awssh/__init__.py") as f:
    VERSION = re.search(r'__version__ = "([^"]+)"', f.read()).group(1)

setup(
    name="awssh",
    version=VERSION,
    description="Pick a running EC2 instance with a fuzzy finder and SSH to it",
    long_description=long_description,
    long_description_content_type="text/markdown",
    install_requires=[
        # Console.log() and Table
        "rich>=12.3.0",
        # Paginators for describe_instances and describe_vpcs. botocore comes
        # along with boto3, but its exceptions are imported directly.
        "boto3>=1.20.0",
        "botocore>=1.23.0",
        "subc>=0.8.0",
        "argcomplete",
    ],
    extras_require={
        "test": [
            "pytest",
        ],
    },
    python_requires=">=3.7",
    license="UPL",
    packages=find_packages(include=["awssh", "awssh.*"]),
    classifiers=[
        "Programming Language :: Python :: 3",
        "License :: OSI Approved :: Universal Permissive License (UPL)",
        "Development Status :: 4 - Beta",
        "Natural Language :: English",
    ],
    keywords="aws ec2 ssh peco",
    entry_points={
        "console_scripts": [
            "awssh=awssh.main:main",
        ],
    },
)
