import codecs
import os
import re

from setuptools import find_packages, setup


def read_file(filename, encoding='utf8'):
    """Read unicode from given file."""
    with codecs.open(filename, encoding=encoding) as fd:
        return fd.read()


here = os.path.abspath(os.path.dirname(__file__))

# read version number (and other metadata) from package init
init_fn = os.path.join(here, 'dns01_renewer', '__init__.py')
meta = dict(re.findall(r"""__([a-z]+)__ = '([^']+)""", read_file(init_fn)))

readme = read_file(os.path.join(here, 'README.rst'))
version = meta['version']

install_requires = [
    'acme>=2.0.0',
    'ConfigArgParse>=1.5.3',
    'configobj>=5.0.6',
    'cryptography>=42.0.0',  # not_valid_after_utc
    'dnspython>=2.0.0',  # Resolver.resolve
    'josepy>=1.13.0',
    'requests>=2.20.0',
    'setuptools>=41.6.0',
]

test_extras = [
    'pytest',
    'pytest-cov',
]

dev_extras = [
    'coverage',
    'mypy',
    'pylint',
    'tox',
    'twine',
    'wheel',
]

setup(
    name='dns01-renewer',
    version=version,
    description="DNS-01 authorization and certificate renewal for self-hosted DNS",
    long_description=readme,
    author="dns01-renewer developers",
    license='Apache License 2.0',
    python_requires='>=3.8',
    classifiers=[
        'Development Status :: 4 - Beta',
        'Environment :: Console',
        'Intended Audience :: System Administrators',
        'License :: OSI Approved :: Apache Software License',
        'Operating System :: POSIX :: Linux',
        'Programming Language :: Python',
        'Programming Language :: Python :: 3',
        'Topic :: Internet :: Name Service (DNS)',
        'Topic :: Security',
        'Topic :: System :: Systems Administration',
        'Topic :: Utilities',
    ],

    packages=find_packages(exclude=['docs', 'examples', 'venv']),
    include_package_data=True,

    install_requires=install_requires,
    extras_require={
        'dev': dev_extras + test_extras,
        'test': test_extras,
    },

    entry_points={
        'console_scripts': [
            'dns01-renewer = dns01_renewer.main:main',
        ],
    },
)
