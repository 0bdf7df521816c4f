"""Run the eks-deploy command line tool with `python -m eks_deploy`."""

from eks_deploy.tool.eks_deploy import main


if __name__ == "__main__":
    main()
