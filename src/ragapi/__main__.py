from ragapi.api.app import main

main()
