from setuptools import setup, find_packages

setup(
    name="gblearn",
    version="1.0.0",
    description="Gradient boosting learner with incremental prediction caching",
    packages=find_packages(include=["gblearn", "gblearn.*"]),
    python_requires=">=3.8",
    install_requires=[
        "numpy",
        "scipy",
        "torch",
    ],
    extras_require={
        "test": ["scikit-learn"],
        "docs": ["sphinx", "sphinx_rtd_theme"],
    },
    include_package_data=True,
)
