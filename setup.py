from setuptools import setup, find_packages
from os import path
import re

package_name="om2graph"
root_dir = path.abspath(path.dirname(__file__))

with open(path.join(root_dir, "README.md")) as f:
    long_description = f.read()

with open(path.join(root_dir, package_name, '__init__.py')) as f:
    init_text = f.read()
    version = re.search(r'__version__\s*=\s*[\'\"](.+?)[\'\"]', init_text).group(1)

setup(
    name=package_name,
    version=version,
    description=\
        "Decoder for DaVinci OM model containers (IMOD). "+
        "Reads the partitioned container and rebuilds the embedded graph as nodes, edges, typed tensors and attributes.",
    long_description=long_description,
    long_description_content_type="text/markdown",
    license="MIT License",
    packages=find_packages(exclude=["tests", "tests.*"]),
    package_data={
        package_name: ["om-metadata.json"],
    },
    platforms=["linux", "unix"],
    python_requires=">=3.8",
    install_requires=[
        "numpy",
        "protobuf>=4.25",
        "onnx",
    ],
    extras_require={
        "test": [
            "pytest",
        ],
    },
    entry_points={
        'console_scripts': [
            "om2graph=om2graph:main"
        ]
    }
)
