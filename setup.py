"""
Setup script for Multiparty - Authenticated group message encryption.

Created by orpheus497

This library provides:
- X25519 pairwise key agreement between group members
- One envelope per message with a ciphertext for every recipient
- Per-recipient HMAC-SHA512 and a group-wide integrity tag
- Per-session replay protection on initialization vectors
- Password-protected identity storage (Argon2id + AES-256-GCM)
- A small command line for key generation, encryption and decryption
"""

from setuptools import setup, find_packages
import os

this_directory = os.path.abspath(os.path.dirname(__file__))
readme_path = os.path.join(this_directory, 'README.md')
if os.path.exists(readme_path):
    with open(readme_path, encoding='utf-8') as f:
        long_description = f.read()
else:
    long_description = __doc__

setup(
    name='multiparty',
    version='1.0.0',
    author='orpheus497',
    description='Authenticated multi-recipient group message encryption',
    long_description=long_description,
    long_description_content_type='text/markdown',
    package_dir={'': 'src'},
    packages=find_packages(where='src'),
    classifiers=[
        'Development Status :: 5 - Production/Stable',
        'Intended Audience :: Developers',
        'Topic :: Communications :: Chat',
        'Topic :: Security :: Cryptography',
        'License :: OSI Approved :: MIT License',
        'Programming Language :: Python :: 3',
        'Programming Language :: Python :: 3.8',
        'Programming Language :: Python :: 3.9',
        'Programming Language :: Python :: 3.10',
        'Programming Language :: Python :: 3.11',
        'Programming Language :: Python :: 3.12',
        'Operating System :: OS Independent',
        'Environment :: Console',
    ],
    python_requires='>=3.8',
    install_requires=[
        'cryptography>=42.0.4',
        'argon2-cffi>=23.1.0',
        'aiofiles>=23.2.1',
        'rich>=13.7.0',
        'tomli>=2.0.1; python_version < "3.11"',
    ],
    extras_require={
        'test': [
            'pytest>=7.4.0',
        ],
    },
    entry_points={
        'console_scripts': [
            'multiparty=multiparty.main:main',
        ],
    },
)
