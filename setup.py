#!/usr/bin/env python
from setuptools import setup, find_packages

with open("README.md", "r") as fh:
    long_description = fh.read()

setup(
    name='django-ldapguard',
    version='1.0.0',
    description='Existence-guarded LDAP directory mutations on top of python-ldap',
    long_description=long_description,
    long_description_content_type="text/markdown",
    keywords=['django', 'ldap'],
    packages=find_packages(),
    package_data={'ldapguard.tests': ['data.json']},
    include_package_data=True,
    python_requires='>=3.10',
    install_requires=[
        'django',
        'ldap_filter',
        'python-ldap',
    ],
    extras_require={
        'test': [
            'python-ldap-faker',
            'pytest',
        ],
    },
    classifiers=[
        "Programming Language :: Python :: 3"
    ],
)
