from setuptools import find_packages
from setuptools import setup

version = '0.4.0'

install_requires = [
    'cryptography>=43.0.0',
    # Josepy 2+ may introduce backward incompatible changes.
    'josepy>=1.14.0, <2',
    'pyrfc3339',
    'requests>=2.20.0',
]

test_extras = [
    'pytest',
    'pytest-xdist',
]

setup(
    name='acmelite',
    version=version,
    description='Lightweight ACME (RFC 8555) client with ARI renewal support',
    license='Apache License 2.0',
    python_requires='>=3.9',
    classifiers=[
        'Development Status :: 4 - Beta',
        'Intended Audience :: Developers',
        'License :: OSI Approved :: Apache Software License',
        'Programming Language :: Python',
        'Programming Language :: Python :: 3',
        'Programming Language :: Python :: 3.9',
        'Programming Language :: Python :: 3.10',
        'Programming Language :: Python :: 3.11',
        'Programming Language :: Python :: 3.12',
        'Programming Language :: Python :: 3.13',
        'Topic :: Internet :: WWW/HTTP',
        'Topic :: Security',
    ],

    package_dir={'': 'src'},
    packages=find_packages(where='src'),
    package_data={'acmelite._internal.tests': ['testdata/*']},
    include_package_data=True,
    install_requires=install_requires,
    extras_require={
        'test': test_extras,
    },
)
