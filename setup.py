import os

from setuptools import find_packages, setup


def read_file(fname):
    with open(fname, encoding="utf-8") as fd:
        return fd.read()


def get_version():
    with open(os.path.join("rasterdims", "_version.py")) as fd:
        # contents are __version__ = "<vstring>"
        return fd.read().split("=")[1].strip().strip('"')


def get_requirements(fname):
    with open(fname, encoding="utf-8") as fd:
        reqs = [line.strip() for line in fd if line.strip()]
    return reqs


NAME = "raster-dims"
DESCRIPTION = "Lazy, coordinate aware arrays over GDAL rasters"
LONG_DESCRIPTION = read_file("README.md")
VERSION = get_version()
LICENSE = "GPL-3.0"
INSTALL_REQUIRES = get_requirements("requirements/default.txt")
TEST_REQUIRES = get_requirements("requirements/test.txt")


setup(
    name=NAME,
    version=VERSION,
    description=DESCRIPTION,
    long_description=LONG_DESCRIPTION,
    long_description_content_type="text/markdown",
    license=LICENSE,
    classifiers=[
        "Intended Audience :: Science/Research",
        "License :: OSI Approved :: GNU General Public License v3 (GPLv3)",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Topic :: Scientific/Engineering :: GIS",
    ],
    package_dir={"": "."},
    packages=find_packages(exclude=["docs", "tests"]),
    install_requires=INSTALL_REQUIRES,
    extras_require={"test": TEST_REQUIRES},
    python_requires=">=3.9",
)
