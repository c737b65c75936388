from setuptools import setup

setup(
    name="skeletonTrackerLib",
    version="0.1.0",
    description="Skeleton tracking lifecycle, joint transform correction and frame broadcasting for depth-sensor trackers.",
    # Explicitly specify the package
    packages=["skeletonTracker"],
    include_package_data=True,
    install_requires=[
        "numpy",
        "msgpack",
        "zstandard",
    ],
    extras_require={
        "test": ["pytest"],
    },
    python_requires=">=3.7",
)
