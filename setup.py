#!/usr/bin/env python
# -*- coding: utf-8 -*-
from setuptools import find_packages, setup

# There are problems running setup.py on Windows if the encoding is not set
with open('README.md', encoding='utf8') as readme_file:
    readme = readme_file.read()


setup(
    name='web3funnel',
    version='0.1.0',
    description="Collects Web3 funnel analytics events and serves the ingest API.",
    long_description=readme,
    long_description_content_type="text/markdown",
    author="Web3 Funnel",
    packages=find_packages(exclude=['tests', 'tests.*']),
    entry_points={
        'console_scripts': [
            'web3funnel=web3funnel.cli:cli_app'
        ]
    },
    include_package_data=True,
    install_requires=[
        'click>=8.0.2',
        'fastapi>=0.110',
        'httpx',
        'pydantic>=2.6.0',
        'rich',
        'tenacity>=8.1.0',
        'typer>=0.12.1',
        'typing-extensions>=4.7.1',
        'uvicorn',
    ],
    extras_require={
        'test': [
            'pytest',
            'pytest-asyncio>=0.23',
        ],
    },
    python_requires=">=3.9",
    license="MIT license",
    zip_safe=False,
    keywords='web3 analytics funnel',
    classifiers=[
        'Development Status :: 3 - Alpha',
        'Intended Audience :: Developers',
        'License :: OSI Approved :: MIT License',
        'Natural Language :: English',
        'Programming Language :: Python :: 3',
        'Programming Language :: Python :: 3.9',
        'Programming Language :: Python :: 3.10',
        'Programming Language :: Python :: 3.11',
        'Programming Language :: Python :: 3.12',
    ]
)
