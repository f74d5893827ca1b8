import setuptools


if __name__ == "__main__":
    setuptools.setup(
        name="glu",
        version="0.1.0",
        description="Review ranges of a Git patch stack as separate branches.",
        packages=["glu"],
        python_requires=">=3.8",
        install_requires=[
            "colorama",
            "pygit2>=1.15",
            "typing_extensions",
        ],
        extras_require={
            "test": [
                "py",
                "pytest",
            ],
        },
        entry_points={
            "console_scripts": [
                "glu=glu.__main__:entry_point",
            ],
        },
    )
