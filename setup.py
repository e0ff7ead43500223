from setuptools import setup, find_packages
setup(
    name="ziso",
    version="0.1.0",
    packages=find_packages(include=["ziso", "ziso.*"]),
    install_requires=["numpy", "zstandard>=0.18"],
    extras_require={"test": ["pytest"]},
    entry_points={"console_scripts": ["ziso=ziso.cli:main"]},
    python_requires=">=3.9",
)
