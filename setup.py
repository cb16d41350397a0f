from setuptools import find_packages, setup

setup(
    name="biotraj",
    version="0.1.0",
    description="Direct collocation trajectory optimization for simulation models",
    author="biotraj Authors",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=[
        "numpy>=1.23.0",
        "scipy>=1.9.0",
        "casadi>=3.6.0",  # CasADi is used for the optimization backend
        "pandas>=1.5.0",  # Used for guess and solution files
    ],
    extras_require={
        "test": ["pytest>=7.0"],
    },
    python_requires=">=3.10",
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Science/Research",
        "Topic :: Scientific/Engineering :: Mathematics",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Programming Language :: Python :: 3.13",
    ],
    keywords="optimal control, trajectory optimization, direct collocation, biomechanics",
)
