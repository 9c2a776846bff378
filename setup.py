from setuptools import setup, find_packages

setup(
    name="vmrotate",
    version="0.1.0",
    description="Rotating virtual machine export backups with retention classes",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    install_requires=[
        "click>=8.0.0",
        "PyYAML>=6.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "vmrotate=vmrotate.cli:main",
        ],
    },
    python_requires=">=3.8",
)
