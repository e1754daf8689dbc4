import setuptools
import codecs
import os

####################
# Version fetching
#
def read(rel_path):
    here = os.path.abspath(os.path.dirname(__file__))
    with codecs.open(os.path.join(here, rel_path), 'r') as fp:
        return fp.read()

def get_version(rel_path):
    for line in read(rel_path).splitlines():
        if line.startswith('__version__'):
            delim = '"' if '"' in line else "'"
            return line.split(delim)[1]
    else:
        raise RuntimeError("Unable to find version string.")

__version__ = get_version("derivstruct/__init__.py")

######################################

with open("README.md", "r") as fh:
	long_description = fh.read()

install_requires = ['numpy>=1.19', 'scipy>=1.4.1']

setuptools.setup(
	name = "derivstruct",
	version = __version__,
	description = "Compiled derivative structures for multivariate forward automatic differentiation.",
	long_description = long_description,
	long_description_content_type = "text/markdown",
	packages = setuptools.find_packages(include = ["derivstruct", "derivstruct.*"]),
	classifiers = [
		"Programming Language :: Python :: 3",
		"License :: OSI Approved :: MIT License",
		"Operating System :: OS Independent",
	],
	python_requires = '>=3.8',
    install_requires = install_requires,
    extras_require = {'test': ['pytest>=7']},
)
