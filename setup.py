from setuptools import find_packages, setup

with open('README.md') as f:
    long_desc = f.read()

setup(
    name='ScopeDAL',
    version='0.1.0',
    description='Relation-aware query builder, hydrator and model plugins on top of PyDAL',
    packages=find_packages('src'),
    package_dir={'': 'src'},
    long_description=long_desc,
    long_description_content_type="text/markdown",
    install_requires=[
        "pydal",
        "configuraptor",
        "tomli",
        "python-dotenv",
        "configurable-json",
    ],
    extras_require={
        "test": [
            "pytest",
            "testcontainers[mysql]",
            "contextlib-chdir",
            "pymysql",
        ],
    },
    python_requires='>=3.11',
)
