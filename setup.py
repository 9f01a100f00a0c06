# encoding: utf-8
from setuptools import setup


setup(
    name='tsmod',
    version='0.1.0',
    description='Time-stepped component modeling using SimPy',
    long_description=open('README.rst', 'rb').read().decode('utf-8'),
    license='MIT',
    install_requires=['simpy', 'numpy', 'PyYAML'],
    extras_require={'test': ['pytest']},
    python_requires='>=3.7',
    packages=['tsmod'],
    include_package_data=True,
    classifiers=[
        'Development Status :: 3 - Alpha',
        'Environment :: Console',
        'Intended Audience :: Developers',
        'Intended Audience :: Science/Research',
        'License :: OSI Approved :: MIT License',
        'Natural Language :: English',
        'Operating System :: OS Independent',
        'Programming Language :: Python',
        'Programming Language :: Python :: 3',
        'Programming Language :: Python :: Implementation :: CPython',
        'Topic :: Scientific/Engineering',
    ],
)
